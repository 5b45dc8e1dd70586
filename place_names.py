from typing import Optional

# Iteration order decides ties when several names occur in one string.
CANONICAL_PLACE_NAMES = (
    "臺北市",
    "新北市",
    "桃園市",
    "臺中市",
    "臺南市",
    "高雄市",
    "基隆市",
    "新竹市",
    "新竹縣",
    "苗栗縣",
    "彰化縣",
    "南投縣",
    "雲林縣",
    "嘉義市",
    "嘉義縣",
    "屏東縣",
    "宜蘭縣",
    "花蓮縣",
    "臺東縣",
    "澎湖縣",
    "金門縣",
    "連江縣",
)

LEGACY_CHARACTER = "台"
STANDARD_CHARACTER = "臺"


def standardize(raw: str) -> str:
    return raw.strip().replace(LEGACY_CHARACTER, STANDARD_CHARACTER)


def normalize_place_name(raw: Optional[str]) -> Optional[str]:
    """
    Map free text or a reverse-geocoded address to a canonical place name.

    The first canonical name contained in the standardized input wins.
    Returns None when nothing matches.
    """
    if not raw:
        return None

    text = standardize(raw)
    if not text:
        return None

    for name in CANONICAL_PLACE_NAMES:
        if name in text:
            return name
    return None


def is_canonical_place_name(name: str) -> bool:
    return standardize(name) in CANONICAL_PLACE_NAMES
