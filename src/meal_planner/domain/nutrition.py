"""Nutrition domain models."""

from dataclasses import dataclass


@dataclass(frozen=True)
class MacroProfile:
    """Calories and macronutrient grams for a food, meal or day."""

    calories: float
    protein_g: float
    carbs_g: float
    fat_g: float

    def __add__(self, other: "MacroProfile") -> "MacroProfile":
        return MacroProfile(
            calories=self.calories + other.calories,
            protein_g=self.protein_g + other.protein_g,
            carbs_g=self.carbs_g + other.carbs_g,
            fat_g=self.fat_g + other.fat_g,
        )

    def scaled(self, factor: float) -> "MacroProfile":
        """Return the profile multiplied by a factor."""
        return MacroProfile(
            calories=self.calories * factor,
            protein_g=self.protein_g * factor,
            carbs_g=self.carbs_g * factor,
            fat_g=self.fat_g * factor,
        )

    def rounded(self) -> "MacroProfile":
        """Round calories to whole numbers and grams to one decimal."""
        return MacroProfile(
            calories=round(self.calories),
            protein_g=round(self.protein_g, 1),
            carbs_g=round(self.carbs_g, 1),
            fat_g=round(self.fat_g, 1),
        )


ZERO_MACROS = MacroProfile(calories=0, protein_g=0, carbs_g=0, fat_g=0)


@dataclass(frozen=True)
class FoodSummary:
    """Summary information about a food from FDC."""

    fdc_id: int
    description: str
    brand_owner: str | None
    brand_name: str | None
    data_type: str | None


@dataclass(frozen=True)
class FoodDetails:
    """Food with macros per 100 g."""

    summary: FoodSummary
    macros: MacroProfile
    serving_size_g: float | None

    def for_grams(self, grams: float) -> MacroProfile:
        """Return macros for a portion weighed in grams."""
        return self.macros.scaled(grams / 100)
