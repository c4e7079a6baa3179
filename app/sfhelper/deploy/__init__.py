"""Deployment engines.

This module exports the engine interface and the sf CLI implementation.
"""

from sfhelper.deploy.base import DeploymentEngine
from sfhelper.deploy.sf import SfDeployEngine

__all__ = ["DeploymentEngine", "SfDeployEngine"]
