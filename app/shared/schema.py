from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, Any, Dict, Iterable, Optional, Type, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict, PlainSerializer
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from app.shared.errors import ValidationError
from app.shared.precision import ZERO


def as_naive_utc(value: datetime) -> datetime:
    """MongoDB hands back naive UTC datetimes, so everything is compared in that form."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# Decimal in Python and MongoDB, plain number in JSON
Quantity = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]
UtcDatetime = Annotated[datetime, AfterValidator(as_naive_utc)]


class LedgerModel(BaseModel):
    """Base for documents: snake_case in Python, camelCase on the wire and in MongoDB."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        str_strip_whitespace=True,
    )

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)


class StoredRecord(LedgerModel):
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Balance(LedgerModel):
    fine: Quantity = ZERO
    amount: Quantity = ZERO

    def __add__(self, other: "Balance") -> "Balance":
        return Balance(fine=self.fine + other.fine, amount=self.amount + other.amount)

    def __neg__(self) -> "Balance":
        return Balance(fine=ZERO - self.fine, amount=ZERO - self.amount)

    def __sub__(self, other: "Balance") -> "Balance":
        return self + (-other)

    @classmethod
    def total(cls, balances: Iterable["Balance"]) -> "Balance":
        result = cls()
        for balance in balances:
            result = result + balance
        return result


def describe_errors(errors: Iterable[dict]) -> str:
    parts = []
    for error in errors:
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = error.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts)


M = TypeVar("M", bound=BaseModel)


def validate_record(model: Type[M], data: Any) -> M:
    """Validate a raw document, raising the API's ValidationError on failure."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(describe_errors(e.errors())) from e


# Bookkeeping keys a client may send back unchanged with an edit
READ_ONLY_KEYS = frozenset({"id", "_id", "__v", "createdAt", "updatedAt", "created_at", "updated_at"})


def alias_patch(model: Type[BaseModel], patch: Dict[str, Any]) -> Dict[str, Any]:
    """
    Key a partial update by the model's wire names.

    Field names and aliases are both accepted; read-only bookkeeping keys are
    dropped and anything else unknown is a ValidationError.
    """
    names = {}
    for name, field in model.model_fields.items():
        alias = field.alias or to_camel(name)
        names[name] = alias
        names[alias] = alias

    fields, unknown = {}, []
    for key, value in patch.items():
        if key in READ_ONLY_KEYS:
            continue
        if key in names:
            fields[names[key]] = value
        else:
            unknown.append(key)
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")
    return fields
