"""
Rollup Aggregator.

Groups classified positions by label and computes sums, MOIC and
percentage-of-grand-total per label, then appends the taxonomy's synthetic
summary rows.
"""
from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from fundmon.engine.classifier import TOTAL_LABEL, Classifier
from fundmon.engine.types import (
    ASSET_GROUPS,
    AssetAmounts,
    GrandTotals,
    Position,
    ProjectMeta,
    RollupRow,
    calculate_moic,
    percentage,
)

AMOUNT_COLUMNS = ("cost", "unrealized_mv", "realized_mv")


def _breakdown_column(group: str, amount: str) -> str:
    return f"{group.lower()}_{amount}"


class RollupAggregator:
    """
    Aggregates positions into rollup rows for one taxonomy.

    Grand totals are computed from the positions themselves, never from the
    rows, so a label that silently dropped positions would show up as a
    mismatch between the rows and the TOTAL.
    """

    def compute_grand_totals(self, positions: Sequence[Position]) -> GrandTotals:
        return GrandTotals(
            project_count=len({p.project_id for p in positions}),
            position_count=len(positions),
            cost=float(sum(p.cost for p in positions)),
            unrealized_mv=float(sum(p.unrealized_mv for p in positions)),
            realized_mv=float(sum(p.realized_mv for p in positions)),
        )

    def to_frame(
        self,
        positions: Sequence[Position],
        classifier: Classifier,
        metadata: Optional[Mapping[str, ProjectMeta]] = None,
        strict: bool = False,
    ) -> pd.DataFrame:
        """One row per position with its label attached."""
        metadata = metadata or {}
        records = []
        for p in positions:
            record = {
                "label": classifier.classify(p, metadata.get(p.project_id), strict=strict),
                "project_id": p.project_id,
                "cost": p.cost,
                "unrealized_mv": p.unrealized_mv,
                "realized_mv": p.realized_mv,
                "ownership": p.attributes.overall_ownership_percentage,
            }
            if classifier.carries_breakdown:
                for group in ASSET_GROUPS:
                    amounts = p.breakdown.get(group, AssetAmounts())
                    for amount in AMOUNT_COLUMNS:
                        record[_breakdown_column(group, amount)] = getattr(amounts, amount)
            records.append(record)

        df = pd.DataFrame.from_records(records)
        if not df.empty:
            df["ownership"] = pd.to_numeric(df["ownership"], errors="coerce")
        return df

    def rollup(
        self,
        positions: Sequence[Position],
        classifier: Classifier,
        metadata: Optional[Mapping[str, ProjectMeta]] = None,
        grand_totals: Optional[GrandTotals] = None,
        strict: bool = False,
    ) -> List[RollupRow]:
        """
        Rollup rows sorted by the taxonomy's priority, summary rows last.

        Args:
            positions: Positions at the classifier's grain
            classifier: Shared classifier for the taxonomy
            metadata: project_id -> ProjectMeta
            grand_totals: Totals used as percentage denominators (computed
                from positions when omitted)
            strict: Raise on classification gaps

        Returns:
            List of RollupRow, empty when there are no positions
        """
        if not positions:
            return []

        totals = grand_totals or self.compute_grand_totals(positions)
        df = self.to_frame(positions, classifier, metadata, strict)

        rows = [
            self._make_row(label, False, group, totals, classifier)
            for label, group in df.groupby("label", sort=False)
        ]
        rows.sort(key=lambda r: classifier.sort_key(r.label, r.cost))

        present = [r.label for r in rows]
        for summary in classifier.summary_groups:
            members = [label for label in present if summary.member(label)]
            if members:
                subset = df[df["label"].isin(members)]
                rows.append(self._make_row(summary.label, True, subset, totals, classifier))

        if classifier.has_total:
            rows.append(self._make_row(TOTAL_LABEL, True, df, totals, classifier))

        return rows

    def _make_row(
        self,
        label: str,
        is_summary: bool,
        frame: pd.DataFrame,
        totals: GrandTotals,
        classifier: Classifier,
    ) -> RollupRow:
        cost = float(frame["cost"].sum())
        unrealized = float(frame["unrealized_mv"].sum())
        realized = float(frame["realized_mv"].sum())
        total_mv = unrealized + realized
        project_count = int(frame["project_id"].nunique())
        position_count = int(len(frame))

        row = RollupRow(
            label=label,
            is_summary=is_summary,
            project_count=project_count,
            position_count=position_count,
            project_percentage=percentage(project_count, totals.project_count),
            count_percentage=percentage(position_count, totals.position_count),
            cost=cost,
            cost_percentage=percentage(cost, totals.cost),
            realized_mv=realized,
            realized_mv_percentage=percentage(realized, totals.realized_mv),
            unrealized_mv=unrealized,
            unrealized_mv_percentage=percentage(unrealized, totals.unrealized_mv),
            total_mv=total_mv,
            moic=calculate_moic(total_mv, cost),
        )

        if classifier.carries_ownership:
            ownership = frame["ownership"].dropna()
            row.avg_ownership = float(np.nan_to_num(ownership.mean())) if not ownership.empty else 0.0
            row.median_ownership = float(np.nan_to_num(ownership.median())) if not ownership.empty else 0.0

        if classifier.carries_breakdown:
            row.breakdown = self._breakdown(frame)

        return row

    def _breakdown(self, frame: pd.DataFrame) -> Dict[str, AssetAmounts]:
        breakdown = {}
        for group in ASSET_GROUPS:
            sums = {
                amount: float(frame[_breakdown_column(group, amount)].sum())
                for amount in AMOUNT_COLUMNS
            }
            breakdown[group] = AssetAmounts(**sums)
        return breakdown


rollup_aggregator = RollupAggregator()
