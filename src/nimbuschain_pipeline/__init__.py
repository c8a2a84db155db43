"""NimbusChain Pipeline client package."""

from nimbuschain_pipeline.client import ProcessingClient
from nimbuschain_pipeline.controller import PipelineController, PipelineRuntime

__all__ = ["PipelineController", "PipelineRuntime", "ProcessingClient"]
