from __future__ import annotations

import random
from types import MappingProxyType
from typing import List, Mapping, Optional, Sequence, Tuple

DEFAULT_BANK = "english"

WORDS_EN: Tuple[str, ...] = (
    "AFRICA", "AGENT", "AIR", "ALIEN", "AMAZON", "ANGEL", "ANTARCTICA", "APPLE",
    "ARM", "BACK", "BAND", "BANK", "BARK", "BEACH", "BELT", "BERLIN",
    "BERRY", "BOARD", "BOND", "BOOM", "BOW", "BOX", "BUG", "CANADA",
    "CAPITAL", "CELL", "CENTER", "CHINA", "CHOCOLATE", "CIRCLE", "CLUB", "COMPOUND",
    "COPPER", "CRASH", "CRICKET", "CROSS", "DEATH", "DICE", "DINOSAUR", "DOCTOR",
    "DOG", "DRESS", "DWARF", "EAGLE", "ENGINE", "EUROPE", "FACE", "FAIR",
    "FALL", "FIELD", "FIRE", "FISH", "FLUTE", "FLY", "FOREST", "GAME",
    "GHOST", "GIANT", "GLASS", "GLOVE", "GOLD", "GRASS", "GREECE", "GREEN",
    "HAM", "HEAD", "HIMALAYAS", "HOLE", "HOOD", "HOOK", "HORSE", "HOSPITAL",
    "ICE", "ICE CREAM", "INDIA", "IRON", "IVORY", "JAM", "JET", "JUPITER",
    "KANGAROO", "KETCHUP", "KID", "KING", "KIWI", "KNIFE", "KNIGHT", "LAB",
    "LAP", "LASER", "LAWYER", "LEAD", "LEMON", "LIMOUSINE", "LOCK", "LOG",
    "MAIL", "MAMMOTH", "MAPLE", "MARCH", "MASS", "MERCURY", "MILLIONAIRE", "MINT",
    "MOON", "MOUSE", "NEEDLE", "NET", "NIGHT", "NOTE", "NUT", "OCTOPUS",
    "OIL", "OLIVE", "OPERA", "ORANGE", "PALM", "PAN", "PANTS", "PAPER",
    "PARACHUTE", "PARK", "PENGUIN", "PIANO", "PILOT", "PIPE", "PIRATE", "PISTOL",
    "PLANE", "PLATE", "POINT", "POLE", "PORT", "PRINCESS", "PYRAMID", "QUEEN",
    "RABBIT", "RING", "ROBOT", "ROCK", "ROME", "ROOT", "ROSE", "SATURN",
    "SCHOOL", "SCREEN", "SHADOW", "SHARK", "SHIP", "SHOE", "SNOW", "SOCK",
    "SPACE", "SPIDER", "SPRING", "SPY", "STAR", "STREAM", "SUB", "SWING",
    "TABLE", "TAIL", "TEMPLE", "THIEF", "TOOTH", "TORCH", "TOWER", "TRAIN",
    "TRIANGLE", "TRIP", "TUBE", "UNICORN", "VAN", "WAKE", "WATCH", "WAVE",
    "WHALE", "WITCH", "WORM", "YARD",
)

WORDS_ES: Tuple[str, ...] = (
    "ÁGUILA", "AGUJA", "ANILLO", "ARAÑA", "ÁRBOL", "ARENA", "AVIÓN", "BALLENA",
    "BANCO", "BARCO", "BOSQUE", "BOTA", "CABALLO", "CAMPO", "CARTA", "CASTILLO",
    "CINTURÓN", "COHETE", "CORONA", "CUCHILLO", "DADO", "DIENTE", "DRAGÓN", "ESPADA",
    "ESPÍA", "ESTRELLA", "FANTASMA", "FUEGO", "GATO", "GIGANTE", "GUANTE", "HIELO",
    "HOSPITAL", "HUEVO", "IGLESIA", "ISLA", "JARDÍN", "LADRÓN", "LÁMPARA", "LEÓN",
    "LIBRO", "LLAVE", "LUNA", "MANZANA", "MAPA", "MÉDICO", "MESA", "MONTAÑA",
    "MURCIÉLAGO", "NIEVE", "NUBE", "OLA", "ORO", "PALACIO", "PAPEL", "PARQUE",
    "PERRO", "PIANO", "PILOTO", "PIRATA", "PIRÁMIDE", "PLANETA", "PUENTE", "PUERTO",
    "REINA", "RELOJ", "REY", "ROBOT", "ROSA", "SERPIENTE", "SOMBRA", "TIBURÓN",
    "TORRE", "TREN", "TRIÁNGULO", "VAMPIRO", "VENTANA", "VIENTO", "ZAPATO", "ZORRO",
)

WORD_BANKS: Mapping[str, Tuple[str, ...]] = MappingProxyType(
    {
        "english": WORDS_EN,
        "spanish": WORDS_ES,
    }
)


def bank_words(bank: Optional[str]) -> Tuple[str, ...]:
    """Words for a named bank, falling back to English for unknown names."""

    return WORD_BANKS.get((bank or DEFAULT_BANK).strip().lower(), WORD_BANKS[DEFAULT_BANK])


def pick_words(words: Sequence[str], count: int, rng: Optional[random.Random] = None) -> List[str]:
    unique = list(dict.fromkeys(w for w in words if w))
    if count > len(unique):
        raise ValueError(f"Need {count} words, bank only has {len(unique)}")
    return (rng or random).sample(unique, count)
