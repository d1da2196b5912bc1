"""Agent graph models consumed by the pipeline"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, JSON, ForeignKey
from promptloop.database import Base

class Agent(Base):
    """Graph of model/tool nodes"""
    __tablename__ = "agents"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    flags = Column(JSON, default=dict)  # e.g. {"isN8N": true}
    created_at = Column(DateTime, default=datetime.now)

class AgentNode(Base):
    """A node of an agent backed by a monitored model"""
    __tablename__ = "agent_nodes"

    id = Column(Integer, primary_key=True, index=True)
    agent_id = Column(Integer, ForeignKey("agents.id"), nullable=False, index=True)
    model_id = Column(Integer, ForeignKey("models.id"), nullable=True, index=True)
    name = Column(String(200), nullable=False)

class AgentLog(Base):
    """One agent run; parent of the model logs produced during it"""
    __tablename__ = "agent_logs"

    id = Column(Integer, primary_key=True, index=True)
    agent_id = Column(Integer, ForeignKey("agents.id"), nullable=False, index=True)
    status = Column(String(30), default="success", index=True)  # success, failed_model, failed_tool
    created_at = Column(DateTime, default=datetime.now)
