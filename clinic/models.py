from sqlalchemy import Column, Integer, String, Date, ForeignKey
from .database import Base

class Patient(Base):
    __tablename__ = "patients"

    # seq carries insertion order, id is the public identifier
    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False)
    age = Column(Integer, nullable=False)
    gender = Column(String, nullable=False)
    address = Column(String, nullable=True)
    contact_number = Column(String, nullable=True)

class Test(Base):
    __tablename__ = "tests"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, unique=True, nullable=False, index=True)
    patient_id = Column(String, ForeignKey("patients.id"), nullable=False, index=True)
    test_type = Column(String, nullable=False)
    test_date = Column(Date, nullable=False)
    result = Column(String, nullable=False)
