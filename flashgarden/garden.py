"""Garden stages unlocked by keeping a study streak alive."""

from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class GardenStage:
    index: int
    min_days: int
    name: str
    description: str

    def as_dict(self):
        return asdict(self)


# Stage definitions, ordered by the streak needed to reach them
GARDEN_STAGES = (
    GardenStage(0, 0, 'Barren Plot', 'A small patch of dirt waiting for seeds'),
    GardenStage(1, 1, 'Sprouting Seeds', 'Tiny green sprouts peek through the soil'),
    GardenStage(2, 3, 'Young Seedlings', 'Small plants reaching for the sun'),
    GardenStage(3, 7, 'Growing Garden', 'A variety of young plants taking shape'),
    GardenStage(4, 14, 'Blooming Patch', 'Colorful flowers begin to bloom'),
    GardenStage(5, 30, 'Flourishing Garden', 'A lush garden full of life'),
    GardenStage(6, 60, 'Thriving Oasis', 'A beautiful sanctuary of nature'),
    GardenStage(7, 100, 'Enchanted Grove', 'A magical garden with rare flora'),
    GardenStage(8, 200, 'Paradise Garden', 'A slice of paradise on earth'),
    GardenStage(9, 365, 'Eternal Eden', 'The legendary Garden of Eden itself'),
    GardenStage(10, 1000, 'Celestial Eden', 'A garden touched by the divine'),
)

GARDEN_THRESHOLDS = tuple(stage.min_days for stage in GARDEN_STAGES)
MAX_STAGE = len(GARDEN_STAGES) - 1

GARDEN_THEMES = ('cottage', 'zen', 'tropical', 'desert', 'forest')
DEFAULT_GARDEN_THEME = 'cottage'


def garden_stage(streak: int) -> int:
    """Index of the highest stage whose threshold the streak has reached."""
    index = 0
    for i, threshold in enumerate(GARDEN_THRESHOLDS):
        if streak >= threshold:
            index = i
        else:
            break
    return index


def get_garden_stage(streak: int) -> GardenStage:
    return GARDEN_STAGES[garden_stage(streak)]


def next_stage(streak: int) -> GardenStage | None:
    """The next stage still to unlock, or None at the top tier."""
    index = garden_stage(streak)
    if index >= MAX_STAGE:
        return None
    return GARDEN_STAGES[index + 1]


def is_valid_stage(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= MAX_STAGE


def display_stage(streak: int, override=None, can_override=False) -> int:
    """
    Stage to show in the garden.

    An override only applies for users allowed to set one; it never feeds
    back into the streak itself.
    """
    if can_override and is_valid_stage(override):
        return override
    return garden_stage(streak)
