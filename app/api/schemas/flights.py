from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field, condecimal
from pydantic.alias_generators import to_camel

from app.domain.entities.traveler import ContactInfo, Traveler, TravelerDocument

Money = condecimal(max_digits=12, decimal_places=2)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TravelerDocumentIn(CamelModel):
    document_type: str = "passport"
    number: str = ""
    expiry_date: str | None = None
    issuing_country: str | None = None
    nationality: str | None = None
    holder: bool = True


class TravelerIn(CamelModel):
    # Field rules are enforced by traveler validation so every problem is reported at once.
    first_name: str = ""
    last_name: str = ""
    date_of_birth: str | None = None
    gender: str | None = None
    email: str | None = None
    phone_number: str | None = None
    phone_country_code: str | None = None
    passenger_type: str = "adult"
    nationality: str | None = None
    title: str | None = None
    offer_passenger_id: str | None = None
    documents: list[TravelerDocumentIn] = Field(default_factory=list)

    def to_domain(self) -> Traveler:
        return Traveler(
            first_name=self.first_name.strip(),
            last_name=self.last_name.strip(),
            date_of_birth=self.date_of_birth,
            gender=self.gender,
            email=self.email,
            phone_number=self.phone_number,
            phone_country_code=self.phone_country_code,
            passenger_type=(self.passenger_type or "adult").lower(),
            nationality=self.nationality,
            title=self.title,
            offer_passenger_id=self.offer_passenger_id,
            documents=[
                TravelerDocument(
                    document_type=(doc.document_type or "passport").lower(),
                    number=doc.number.strip(),
                    expiry_date=doc.expiry_date,
                    issuing_country=doc.issuing_country,
                    nationality=doc.nationality,
                    holder=doc.holder,
                )
                for doc in self.documents
            ],
        )


class ContactIn(CamelModel):
    email: EmailStr
    phone: str | None = None
    name: str | None = None

    def to_domain(self) -> ContactInfo:
        return ContactInfo(email=str(self.email), phone=self.phone, name=self.name)


class CreateOrderRequest(CamelModel):
    flight_offer: dict[str, Any]
    travelers: list[TravelerIn] = Field(default_factory=list)
    contacts: ContactIn
    remarks: str | None = Field(default=None, max_length=500)


class OfferRequest(CamelModel):
    """Body for confirm-price and seat-maps: the offer exactly as search returned it."""

    flight_offer: dict[str, Any]


class ChangeOptionsRequest(CamelModel):
    slices: list[dict[str, Any]] = Field(default_factory=list)


class ChangeConfirmRequest(CamelModel):
    change_offer_id: str
    amount: Money | None = None
    currency: str | None = Field(default=None, min_length=3, max_length=3)


class RefundOrderRequest(CamelModel):
    reason: str | None = None
