"""Drill-down Provider: the positions folded into one rollup label."""
from collections import OrderedDict
from typing import Dict, List, Mapping, Optional, Sequence

from fundmon.engine.classifier import Classifier
from fundmon.engine.types import Position, PositionDetail, ProjectMeta, calculate_moic


class DrillDownProvider:

    def positions_in_label(
        self,
        positions: Sequence[Position],
        classifier: Classifier,
        label: str,
        metadata: Optional[Mapping[str, ProjectMeta]] = None,
        strict: bool = False,
    ) -> List[PositionDetail]:
        """
        Re-apply the classifier and keep the positions labelled `label`.

        Positions are folded per project, so the result length is the rollup
        row's project count and its sums are the row's sums. Summary labels
        are not drillable and yield an empty list.
        """
        if classifier.is_summary_label(label):
            return []

        metadata = metadata or {}
        folded: Dict[str, List[Position]] = OrderedDict()
        for position in positions:
            meta = metadata.get(position.project_id)
            if classifier.classify(position, meta, strict=strict) == label:
                folded.setdefault(position.project_id, []).append(position)

        details = [
            self._detail(project_id, members, label, metadata.get(project_id), classifier)
            for project_id, members in folded.items()
        ]
        details.sort(key=lambda d: (-d.cost, d.project_id))
        return details

    def _detail(
        self,
        project_id: str,
        members: List[Position],
        label: str,
        meta: Optional[ProjectMeta],
        classifier: Classifier,
    ) -> PositionDetail:
        cost = sum(p.cost for p in members)
        unrealized = sum(p.unrealized_mv for p in members)
        realized = sum(p.realized_mv for p in members)

        asset_classes = set()
        for p in members:
            if p.asset_class is not None:
                asset_classes.add(p.asset_class)
            else:
                asset_classes.update(p.asset_classes)

        valuations = [
            p.attributes.overall_valuation for p in members
            if p.attributes.overall_valuation is not None
        ]
        ownership = None
        if classifier.carries_ownership or classifier.carries_breakdown:
            ownership = next(
                (p.attributes.overall_ownership_percentage for p in members
                 if p.attributes.overall_ownership_percentage is not None),
                None,
            )

        return PositionDetail(
            project_id=project_id,
            project_name=(meta.name if meta is not None and meta.name else project_id),
            label=label,
            asset_classes=sorted(asset_classes),
            position_count=len(members),
            cost=float(cost),
            unrealized_mv=float(unrealized),
            realized_mv=float(realized),
            total_mv=float(unrealized + realized),
            moic=calculate_moic(unrealized + realized, cost),
            ownership=ownership,
            valuation=max(valuations) if valuations else None,
        )


drill_down_provider = DrillDownProvider()
