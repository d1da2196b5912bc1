from promptloop.models.company import Company, User, ModelGroup
from promptloop.models.agent import Agent, AgentNode, AgentLog
from promptloop.models.model import Model
from promptloop.models.model_log import ModelLog, LogStatus, Environment
from promptloop.models.model_version import ModelVersion
from promptloop.models.ab_test import ABTestModel
from promptloop.models.reviewers import ReviewersModel, InsightsModel
from promptloop.models.insight import Insight
from promptloop.models.evaluation import EvaluationPrompt, ModelEvaluationPrompt, EvaluationLog, EvaluatorType
from promptloop.models.metric import ModelMetric, ModelMetricLog

__all__ = [
    "Company",
    "User",
    "ModelGroup",
    "Agent",
    "AgentNode",
    "AgentLog",
    "Model",
    "ModelLog",
    "LogStatus",
    "Environment",
    "ModelVersion",
    "ABTestModel",
    "ReviewersModel",
    "InsightsModel",
    "Insight",
    "EvaluationPrompt",
    "ModelEvaluationPrompt",
    "EvaluationLog",
    "EvaluatorType",
    "ModelMetric",
    "ModelMetricLog",
]
