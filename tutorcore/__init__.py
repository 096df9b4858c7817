"""
tutor-core: adaptive tutoring engine.

Subpackages:
- learning: Bayesian Knowledge Tracing, SM-2 spacing, learner skill state
- adaptive: scaffold/recommendation policy and micro-assessment triggering
- study: desirable difficulties (interleaving, variation, retrieval practice)
- tutoring: Socratic dialogue and productive-failure exploration
- integrations: language-model client
- db: SQLAlchemy learner store
"""

__version__ = "0.1.0"
