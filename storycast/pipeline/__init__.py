"""Linear episode pipeline (narrative, interview, debate).

run_episode() drives one episode through outline → script → audio →
upload → publish, persisting Episode.status before every stage.
"""

from .formats import EpisodeRequest, ScriptArtifacts, workflow_for  # noqa: F401
from .orchestrator import (  # noqa: F401
    GenerationProgress,
    publish_episode,
    run_episode,
)
