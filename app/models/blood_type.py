from sqlalchemy import Enum
import enum

class BloodType(str, enum.Enum):
    A_POS = "A+"
    A_NEG = "A-"
    B_POS = "B+"
    B_NEG = "B-"
    AB_POS = "AB+"
    AB_NEG = "AB-"
    O_POS = "O+"
    O_NEG = "O-"


def enum_values(enum_cls):
    """Persist enum values ("A+") rather than member names ("A_POS")."""
    return [member.value for member in enum_cls]


# Shared column type so every table stores the same representation
blood_type_column = Enum(BloodType, name="blood_type", values_callable=enum_values)
