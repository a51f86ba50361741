"""
ABO/Rh red cell compatibility: which donor blood types a recipient can receive.
"""
from typing import Dict, FrozenSet, Union

from app.core.exceptions import ValidationError
from app.models.blood_type import BloodType

O_NEG, O_POS = BloodType.O_NEG, BloodType.O_POS
A_NEG, A_POS = BloodType.A_NEG, BloodType.A_POS
B_NEG, B_POS = BloodType.B_NEG, BloodType.B_POS
AB_NEG, AB_POS = BloodType.AB_NEG, BloodType.AB_POS

# recipient -> donor types it can receive from
COMPATIBILITY_MATRIX: Dict[BloodType, FrozenSet[BloodType]] = {
    O_NEG: frozenset({O_NEG}),
    O_POS: frozenset({O_NEG, O_POS}),
    A_NEG: frozenset({O_NEG, A_NEG}),
    A_POS: frozenset({O_NEG, O_POS, A_NEG, A_POS}),
    B_NEG: frozenset({O_NEG, B_NEG}),
    B_POS: frozenset({O_NEG, O_POS, B_NEG, B_POS}),
    AB_NEG: frozenset({O_NEG, A_NEG, B_NEG, AB_NEG}),
    AB_POS: frozenset(BloodType),
}


def parse_blood_type(value: Union[str, BloodType]) -> BloodType:
    """Coerce "A+" / BloodType.A_POS to BloodType; unknown values are a ValidationError."""
    if isinstance(value, BloodType):
        return value
    try:
        return BloodType(str(value).strip().upper())
    except ValueError:
        raise ValidationError(
            f"Unknown blood type: {value!r}",
            {"allowed": [bt.value for bt in BloodType]}
        )


def compatible_donors(requested_type: Union[str, BloodType]) -> FrozenSet[BloodType]:
    """Donor blood types that can give to a recipient of `requested_type`."""
    return COMPATIBILITY_MATRIX[parse_blood_type(requested_type)]


def can_donate(donor_type: Union[str, BloodType], recipient_type: Union[str, BloodType]) -> bool:
    return parse_blood_type(donor_type) in compatible_donors(recipient_type)


def compatible_recipients(donor_type: Union[str, BloodType]) -> FrozenSet[BloodType]:
    """Recipient blood types a donor of `donor_type` can give to."""
    donor_type = parse_blood_type(donor_type)
    return frozenset(
        recipient for recipient, donors in COMPATIBILITY_MATRIX.items() if donor_type in donors
    )
