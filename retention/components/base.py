"""Base class for classification components."""

from typing import TYPE_CHECKING, Optional

from ..config import DEFAULT_CONFIG
from ..rules import load_rules

if TYPE_CHECKING:
    from ..config import DetectionPolicy, RetentionConfig
    from ..rules import RuleTable


class BaseClassifier:
    """
    Shared wiring for the rule-driven classifiers.

    Each component reads its thresholds from the detection policy and its
    keywords from the rule table. Components hold no mutable state, so one
    instance can serve any number of concurrent callers.
    """

    name: str = "base"

    def __init__(
        self,
        config: Optional["RetentionConfig"] = None,
        rules: Optional["RuleTable"] = None,
    ):
        """
        Initialize classifier with configuration.

        Args:
            config: RetentionConfig instance. Uses DEFAULT_CONFIG if None.
            rules: RuleTable instance. Loaded from config.rules_dir if None.
        """
        self.config = config or DEFAULT_CONFIG
        self.rules = rules or load_rules(self.config.rules_dir)

    @property
    def policy(self) -> "DetectionPolicy":
        return self.config.detection

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"
