"""nightfall -- match orchestration engine for social-deduction games."""

__version__ = "0.1.0"
