"""storycast: synthetic audio narratives.

Linear episodes (narrative, interview, debate) run through
storycast.pipeline; branching adventures live in storycast.adventure.
Every provider call goes through storycast.retry.execute.
"""

__version__ = "0.1.0"
