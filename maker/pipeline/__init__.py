"""Pipeline components: decomposer, candidate generator, voter and orchestrator."""

from maker.pipeline.decomposer import decompose
from maker.pipeline.generator import generate
from maker.pipeline.orchestrator import SessionOrchestrator
from maker.pipeline.quality import is_red_flag
from maker.pipeline.voter import vote

__all__ = ["decompose", "generate", "vote", "is_red_flag", "SessionOrchestrator"]
