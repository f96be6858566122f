from sqlmodel import SQLModel, Field
from typing import Optional


class Employee(SQLModel, table=True):
    __tablename__ = "employees"
    __table_args__ = {"extend_existing": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: Optional[str] = Field(default=None, index=True)
    status: str = Field(default="active")


class Contact(SQLModel, table=True):
    __tablename__ = "contacts"
    __table_args__ = {"extend_existing": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    first_name: str
    last_name: Optional[str] = None
    email: Optional[str] = None
    company: Optional[str] = None
    status: str = Field(default="active")


def contact_name(row: Optional[dict]) -> Optional[str]:
    if not row:
        return None
    last = row.get("last_name")
    return f"{row['first_name']} {last}" if last else row["first_name"]
