"""Company, user and model group models"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey
from promptloop.database import Base

class Company(Base):
    """Tenant owning model groups, agents and users"""
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    optimization_model = Column(String(200))  # LLM used for insights/optimization
    optimization_provider = Column(String(50))
    optimization_token = Column(String(500))
    test_mode = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.now)

class User(Base):
    """Company user, recipient of pipeline notifications"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    email = Column(String(320), nullable=False)
    first_name = Column(String(100))
    created_at = Column(DateTime, default=datetime.now)

class ModelGroup(Base):
    """Logical group of models owned by a company"""
    __tablename__ = "model_groups"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.now)
