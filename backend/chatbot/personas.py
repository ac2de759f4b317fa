# chatbot/personas.py
# Demo Medicare beneficiaries.
#
# There is no login. A chat session is opened for one of
# these personas and the controllers read their plan,
# medications and address to personalize answers.

from dataclasses import asdict, dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class Medication:
    drug_name: str
    dosage:    Optional[str] = None
    frequency: Optional[str] = None
    duration:  Optional[str] = None
    route:     Optional[str] = None
    strength:  Optional[str] = None
    rate:      Optional[str] = None
    drug_form: Optional[str] = None
    notes:     Optional[str] = None


@dataclass(frozen=True)
class Beneficiary:
    beneficiary_key:        int
    first_name:             str
    last_name:              str
    birth_date:             str
    city:                   str
    state:                  str
    zip:                    str
    medicare_id:            str
    plan_type:              str
    effective_date:         str
    primary_care_physician: Optional[str] = None
    preferred_pharmacy:     Optional[str] = None
    chronic_conditions:     List[str] = field(default_factory=list)
    medications:            List[Medication] = field(default_factory=list)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def medication_dicts(self) -> List[dict]:
        return [asdict(m) for m in self.medications]

    def summary(self) -> dict:
        """Public fields for the persona picker. No Medicare ID."""
        return {
            "beneficiary_key": self.beneficiary_key,
            "name":            self.full_name,
            "plan_type":       self.plan_type,
            "location":        f"{self.city}, {self.state}",
        }


STATIC_PERSONAS: List[Beneficiary] = [
    Beneficiary(
        beneficiary_key=1001,
        first_name="Eleanor",
        last_name="Rodriguez",
        birth_date="1943-07-12",
        city="Los Angeles",
        state="CA",
        zip="90026",
        medicare_id="MED001947123A",
        plan_type="Medicare Advantage",
        effective_date="2008-07-01",
        primary_care_physician="Dr. Maria Gonzalez",
        preferred_pharmacy="CVS Pharmacy #4521",
        chronic_conditions=["Type 2 Diabetes", "Hypertension"],
        medications=[
            Medication("Metformin", dosage="500mg", frequency="twice daily", duration="long-term", drug_form="tablet"),
            Medication("Lisinopril", dosage="10mg", frequency="once daily", duration="long-term", drug_form="tablet"),
        ],
    ),
    Beneficiary(
        beneficiary_key=1002,
        first_name="William",
        last_name="Thompson",
        birth_date="1950-02-03",
        city="Chicago",
        state="IL",
        zip="60614",
        medicare_id="MED002558734B",
        plan_type="Original Medicare",
        effective_date="2015-02-01",
        primary_care_physician="Dr. Alan Brooks",
        preferred_pharmacy="Walgreens #0877",
        chronic_conditions=["Atrial Fibrillation", "High Cholesterol"],
        medications=[
            Medication("Eliquis", dosage="5mg", frequency="twice daily", duration="long-term", drug_form="tablet"),
            Medication("Atorvastatin", dosage="40mg", frequency="once daily at bedtime", duration="long-term"),
        ],
    ),
    Beneficiary(
        beneficiary_key=1003,
        first_name="Joyce",
        last_name="Washington",
        birth_date="1946-11-21",
        city="Atlanta",
        state="GA",
        zip="30309",
        medicare_id="MED003164520C",
        plan_type="Medicare Supplement",
        effective_date="2011-11-01",
        primary_care_physician="Dr. James Thompson",
        preferred_pharmacy="Kroger Pharmacy - Peachtree",
        chronic_conditions=["Hypothyroidism", "Osteoarthritis"],
        medications=[
            Medication("Levothyroxine", dosage="75mcg", frequency="once daily before breakfast", duration="long-term"),
        ],
    ),
    Beneficiary(
        beneficiary_key=1004,
        first_name="Robert",
        last_name="Chen",
        birth_date="1948-09-15",
        city="San Francisco",
        state="CA",
        zip="94115",
        medicare_id="MED004848091D",
        plan_type="Medicare Advantage",
        effective_date="2013-09-01",
        primary_care_physician="Dr. Sarah Kim",
        preferred_pharmacy="Walgreens #1234",
        chronic_conditions=["Rheumatoid Arthritis", "Osteoporosis", "GERD"],
        medications=[
            Medication("Methotrexate", dosage="15mg", frequency="once weekly", duration="long-term",
                       notes="Take with folic acid, monitor liver function"),
            Medication("Alendronate", dosage="70mg", frequency="once weekly", duration="long-term"),
            Medication("Omeprazole", dosage="20mg", frequency="once daily before breakfast", duration="long-term"),
            Medication("Folic Acid", dosage="1mg", frequency="daily except on methotrexate day", duration="long-term"),
        ],
    ),
]


def get_persona(beneficiary_key) -> Optional[Beneficiary]:
    return next((p for p in STATIC_PERSONAS if p.beneficiary_key == beneficiary_key), None)


def list_personas() -> List[dict]:
    return [p.summary() for p in STATIC_PERSONAS]
