"""
User Preferences

DESIGN DECISION: Preferences are an explicit typed model. Every field has
its own default, so a partial document (an older backup, a half-written
settings record) is completed field by field by pydantic itself.
No generic recursive dictionary merge is involved.

A Preferences object is passed explicitly into every report and scheduler
call that needs the display currency or recurring note wording.
"""

from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from ledger_engine.models.ledger import Currency


DEFAULT_EXPENSE_CATEGORIES = [
    "Food",
    "Rent & Housing",
    "Transport",
    "Entertainment",
    "Health",
    "Education",
    "Clothing",
    "Other",
]

DEFAULT_INCOME_CATEGORIES = [
    "Salary",
    "Bonus",
    "Bank Interest",
    "Asset Sale",
    "Gift",
    "Other",
]


class CategoryPreferences(BaseModel):
    """Category lists offered for expense and income entry."""

    expense: list[str] = Field(default_factory=lambda: list(DEFAULT_EXPENSE_CATEGORIES))
    income: list[str] = Field(default_factory=lambda: list(DEFAULT_INCOME_CATEGORIES))


class SecurityPreferences(BaseModel):
    """App-lock preferences. The engine only stores them."""
    model_config = ConfigDict(populate_by_name=True)

    enabled: bool = False
    pin: Optional[str] = None
    use_biometrics: bool = Field(
        default=False,
        validation_alias=AliasChoices("use_biometrics", "useBiometrics"),
    )


class Preferences(BaseModel):
    """
    User-facing preferences stored alongside the ledger data.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    app_name: str = Field(
        default="Ledger",
        validation_alias=AliasChoices("app_name", "appName"),
    )
    currency: Currency = Field(
        default=Currency.TL,
        description="Preferred display currency for summaries"
    )
    date_format: Literal["jalali", "gregorian"] = Field(
        default="jalali",
        validation_alias=AliasChoices("date_format", "dateFormat"),
    )
    theme: Literal["light", "dark"] = "light"
    categories: CategoryPreferences = Field(default_factory=CategoryPreferences)
    security: SecurityPreferences = Field(default_factory=SecurityPreferences)

    # Wording of scheduler-generated notes
    recurring_note_suffix: str = Field(
        default="(automatic recurrence)",
        description="Appended to the rule note on materialized transactions"
    )
    recurring_default_note: str = Field(
        default="Automatic recurring transaction",
        description="Note used when the rule has none"
    )
