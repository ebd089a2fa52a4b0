import logging
from typing import Iterable, Optional

from .models import CompiledArtifact, ExtractionOutcome
from .storage import ArtifactStore

logger = logging.getLogger(__name__)

RECORD_SEPARATOR = "\n"


class ResultCompiler:
    """
    Assembles extraction outcomes into the single compiled artifact.
    """

    def __init__(
        self,
        store: Optional[ArtifactStore] = None,
        separator: str = RECORD_SEPARATOR,
        keep_unit_files: bool = False,
    ):
        """
        Initialize the compiler.

        Args:
            store: Where the artifact is written. Without a store the
                artifact is only returned.
            separator: Terminator appended to every record
            keep_unit_files: Also write one file per successful unit
        """
        self.store = store
        self.separator = separator
        self.keep_unit_files = keep_unit_files

    def assemble(self, outcomes: Iterable[ExtractionOutcome]) -> CompiledArtifact:
        """
        Concatenate outcomes in index order, skipping failures and empty results.

        Args:
            outcomes: Outcomes in any order

        Returns:
            Compiled artifact, not yet persisted
        """
        parts = []
        included, skipped = [], []

        for outcome in sorted(outcomes, key=lambda o: o.index):
            if outcome.error is not None:
                logger.warning(f"Skipping failed result for unit {outcome.index}: {outcome.error}")
                skipped.append(outcome.index)
            elif not outcome.content.strip():
                logger.warning(f"Skipping empty result for unit {outcome.index}")
                skipped.append(outcome.index)
            else:
                parts.append(outcome.content + self.separator)
                included.append(outcome.index)

        return CompiledArtifact(text="".join(parts), included_indices=included, skipped_indices=skipped)

    def compile(self, outcomes: Iterable[ExtractionOutcome]) -> CompiledArtifact:
        """
        Assemble outcomes and persist the artifact, replacing any previous one.

        Args:
            outcomes: Outcomes in any order

        Returns:
            Compiled artifact with its location set when a store is configured
        """
        outcomes = list(outcomes)
        artifact = self.assemble(outcomes)

        if self.store is None:
            return artifact

        self.store.clear()
        if self.keep_unit_files:
            included = set(artifact.included_indices)
            for outcome in outcomes:
                if outcome.index in included:
                    self.store.write_unit(outcome.index, outcome.content.encode("utf-8"))

        artifact.location = self.store.write_artifact(artifact.to_bytes())
        logger.info(
            f"Compiled {len(artifact.included_indices)} results "
            f"({len(artifact.skipped_indices)} skipped) into {artifact.location}"
        )
        return artifact
