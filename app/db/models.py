from sqlalchemy import Column, String, Text, BigInteger, JSON, Index

from app.db.base import Base


class Customer(Base):
    __tablename__ = "customers"

    id = Column(String(32), primary_key=True)
    name = Column(String(255), nullable=False, index=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=False, default="")
    address = Column(JSON, default=dict, nullable=False)
    photo_url = Column(Text, nullable=True)
    created_at = Column(BigInteger, nullable=False)
    updated_at = Column(BigInteger, nullable=False)

    __table_args__ = (
        Index("ix_customers_created_at_id", "created_at", "id"),
    )
