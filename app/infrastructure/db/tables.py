from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
)

metadata = MetaData()

bookings = Table(
    "bookings",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("booking_number", String(64), nullable=False, unique=True),
    Column("user_id", String(64), nullable=False, index=True),
    Column("booking_type", String(32), nullable=False),
    Column("booking_status", String(32), nullable=False),
    Column("payment_status", String(32), nullable=False),
    Column("payment_method", String(64)),
    Column("total_amount", Numeric(12, 2), nullable=False),
    Column("currency_code", String(3), nullable=False),
    Column("contact_email", String(255)),
    Column("contact_phone", String(50)),
    Column("product_type", String(32), nullable=False),
    Column("product_id", Integer),
    Column("created_at", DateTime(timezone=True)),
    Column("updated_at", DateTime(timezone=True)),
)

flight_orders = Table(
    "flight_orders",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("order_number", String(64), nullable=False, unique=True),
    Column("user_id", String(64), nullable=False, index=True),
    Column("booking_id", Integer, ForeignKey("bookings.id")),
    Column("provider", String(16), nullable=False),
    Column("provider_order_id", String(128)),
    Column("upstream_offer_id", String(255), nullable=False, index=True),
    # "<user>:<offer>" while the order is active, NULL once released.
    Column("active_offer_key", String(320), unique=True),
    Column("pnr", String(32)),
    Column("status", String(32), nullable=False),
    Column("ticketing_status", String(32), nullable=False),
    Column("payment_status", String(32), nullable=False),
    Column("total_amount", Numeric(12, 2), nullable=False),
    Column("base_amount", Numeric(12, 2), nullable=False),
    Column("tax_amount", Numeric(12, 2), nullable=False),
    Column("currency_code", String(3), nullable=False),
    Column("amount_paid", Numeric(12, 2)),
    Column("number_of_travelers", Integer, nullable=False),
    Column("contact_email", String(255)),
    Column("contact_phone", String(50)),
    Column("flight_offer_data", JSON, nullable=False),
    Column("itineraries", JSON, nullable=False),
    Column("validating_airline", String(3)),
    Column("operating_airlines", JSON),
    Column("documents", JSON),
    Column("ticket_numbers", JSON),
    Column("schedule_changed", Boolean, nullable=False, default=False),
    Column("new_slices", JSON),
    Column("notes", Text),
    Column("expires_at", DateTime(timezone=True)),
    Column("ticketed_at", DateTime(timezone=True)),
    Column("cancelled_at", DateTime(timezone=True)),
    Column("created_at", DateTime(timezone=True)),
    Column("updated_at", DateTime(timezone=True)),
    UniqueConstraint("provider", "provider_order_id", name="uq_flight_orders_provider_order"),
    Index("ix_flight_orders_status", "status"),
)

flight_segments = Table(
    "flight_segments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("flight_order_id", Integer, ForeignKey("flight_orders.id"), nullable=False, index=True),
    Column("segment_number", Integer, nullable=False),
    Column("departure_airport", String(3), nullable=False),
    Column("departure_time", String(32), nullable=False),
    Column("departure_terminal", String(16)),
    Column("arrival_airport", String(3), nullable=False),
    Column("arrival_time", String(32), nullable=False),
    Column("arrival_terminal", String(16)),
    Column("marketing_carrier", String(3), nullable=False),
    Column("marketing_flight_number", String(8), nullable=False),
    Column("operating_carrier", String(3)),
    Column("operating_flight_number", String(8)),
    Column("aircraft", String(64)),
    Column("cabin_class", String(32), nullable=False),
    Column("duration_minutes", Integer),
    Column("checked_bags", Integer, nullable=False, default=0),
    Column("carry_on_bags", Integer, nullable=False, default=1),
    Column("is_codeshare", Boolean, nullable=False, default=False),
    UniqueConstraint("flight_order_id", "segment_number", name="uq_flight_segments_order_number"),
)

travelers = Table(
    "travelers",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("booking_id", Integer, ForeignKey("bookings.id")),
    Column("flight_order_id", Integer, ForeignKey("flight_orders.id"), index=True),
    Column("offer_passenger_id", String(64)),
    Column("passenger_type", String(16), nullable=False),
    Column("title", String(8)),
    Column("first_name", String(150), nullable=False),
    Column("last_name", String(150), nullable=False),
    Column("date_of_birth", String(10)),
    Column("gender", String(8)),
    Column("email", String(255)),
    Column("phone_number", String(50)),
    Column("phone_country_code", String(8)),
    Column("nationality", String(2)),
)

traveler_documents = Table(
    "traveler_documents",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("traveler_id", Integer, ForeignKey("travelers.id"), nullable=False, index=True),
    Column("document_type", String(32), nullable=False),
    Column("number", String(64), nullable=False),
    Column("expiry_date", String(10)),
    Column("issuing_country", String(2)),
    Column("nationality", String(2)),
    Column("holder", Boolean, nullable=False, default=True),
)

payments = Table(
    "payments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", String(64), nullable=False, index=True),
    Column("booking_id", Integer, ForeignKey("bookings.id"), index=True),
    Column("gateway", String(32), nullable=False),
    Column("flow", String(32), nullable=False),
    Column("status", String(32), nullable=False),
    Column("amount", Numeric(12, 2), nullable=False),
    Column("currency_code", String(3), nullable=False),
    Column("refunded_amount", Numeric(12, 2)),
    Column("transaction_ref", String(128), unique=True),
    Column("cart_id", String(64), index=True),
    Column("payment_method", String(64)),
    Column("details", JSON),
    Column("gateway_response", JSON),
    Column("needs_manual_review", Boolean, nullable=False, default=False),
    Column("paid_at", DateTime(timezone=True)),
    Column("refunded_at", DateTime(timezone=True)),
    Column("created_at", DateTime(timezone=True)),
    Column("updated_at", DateTime(timezone=True)),
)

audit_logs = Table(
    "audit_logs",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("action", String(64), nullable=False),
    Column("entity", String(32), nullable=False),
    Column("entity_id", String(128)),
    Column("user_id", String(64)),
    Column("status", String(16), nullable=False),
    Column("details", JSON),
    Column("created_at", DateTime(timezone=True)),
    Index("ix_audit_logs_action_entity", "action", "entity_id"),
)
