from datetime import date

from app.domain.entities.flight_offer import FlightOffer, ProviderKind
from app.domain.entities.traveler import Gender, Traveler


def _parse_date(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def validate_travelers(travelers: list[Traveler], offer: FlightOffer, today: date) -> list[str]:
    """Returns every problem found; an empty list means the travelers can be submitted upstream."""
    if not travelers:
        return ["At least one traveler is required"]

    errors: list[str] = []
    for index, traveler in enumerate(travelers, start=1):
        prefix = f"Traveler {index}"
        if not traveler.first_name or not traveler.last_name:
            errors.append(f"{prefix}: firstName and lastName are required")
        if _parse_date(traveler.date_of_birth) is None:
            errors.append(f"{prefix}: dateOfBirth is required (YYYY-MM-DD)")
        if (traveler.gender or "").upper() not in (Gender.MALE.value, Gender.FEMALE.value):
            errors.append(f"{prefix}: gender must be MALE or FEMALE")
        if not traveler.documents:
            errors.append(f"{prefix}: at least one document (passport) is required")
        for doc_index, document in enumerate(traveler.documents, start=1):
            if not document.number:
                errors.append(f"{prefix}: document {doc_index} number is required")
            expiry = _parse_date(document.expiry_date)
            if expiry is None:
                errors.append(f"{prefix}: document {doc_index} expiryDate is required (YYYY-MM-DD)")
            elif expiry < today:
                errors.append(f"{prefix}: document {doc_index} has expired")

    if offer.provider == ProviderKind.MODERN:
        errors.extend(_validate_offer_passenger_ids(travelers, offer))
    return errors


def _validate_offer_passenger_ids(travelers: list[Traveler], offer: FlightOffer) -> list[str]:
    errors: list[str] = []
    known = offer.passenger_ids()
    if len(travelers) != len(known):
        errors.append(
            f"Offer is priced for {len(known)} passenger(s) but {len(travelers)} traveler(s) were submitted"
        )
    seen: set[str] = set()
    for index, traveler in enumerate(travelers, start=1):
        passenger_id = traveler.offer_passenger_id
        if not passenger_id:
            errors.append(f"Traveler {index}: offerPassengerId is required for this offer")
        elif passenger_id not in known:
            errors.append(f"Traveler {index}: offerPassengerId {passenger_id} does not belong to the offer")
        elif passenger_id in seen:
            errors.append(f"Traveler {index}: offerPassengerId {passenger_id} is used more than once")
        else:
            seen.add(passenger_id)
    return errors
