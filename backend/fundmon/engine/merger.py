"""
Position Merger.

Full outer join of the cost map and the market value map, plus the roll-up
from asset-class grain to project grain.
"""
from collections import OrderedDict
from typing import Dict, List, Mapping, Optional

from fundmon.engine.types import (
    ASSET_GROUPS,
    UNKNOWN_ASSET_CLASS,
    AssetAmounts,
    MarketValue,
    PointAttributes,
    Position,
    PositionKey,
    asset_group,
)

_NO_VALUE = MarketValue()
_NO_ATTRIBUTES = PointAttributes()


def _sort_key(key: PositionKey):
    project_id, asset_class = key
    return (project_id, asset_class or "")


class PositionMerger:

    def merge(
        self,
        cost_map: Mapping[PositionKey, float],
        valuation_map: Mapping[PositionKey, MarketValue],
        attributes: Optional[Mapping[PositionKey, PointAttributes]] = None,
    ) -> List[Position]:
        """
        Join both maps over the union of their keys.

        A key missing on one side still yields a Position with that side at
        zero. Output is ordered by key so repeated runs are identical.
        """
        attributes = attributes or {}
        positions = []
        for key in sorted(set(cost_map) | set(valuation_map), key=_sort_key):
            project_id, asset_class = key
            value = valuation_map.get(key, _NO_VALUE)
            positions.append(Position(
                project_id=project_id,
                asset_class=asset_class,
                cost=float(cost_map.get(key, 0.0)),
                unrealized_mv=value.unrealized,
                realized_mv=value.realized,
                attributes=attributes.get(key, _NO_ATTRIBUTES),
                asset_classes=(asset_class,) if asset_class is not None else (),
            ))
        return positions

    def roll_up_to_projects(
        self,
        positions: List[Position],
        project_attributes: Optional[Mapping[PositionKey, PointAttributes]] = None,
    ) -> List[Position]:
        """
        Sum asset-class positions per project.

        Each project position carries its cost and market value split into the
        Equity / Tokens / Others groups for two-level display.
        """
        project_attributes = project_attributes or {}
        projects: Dict[str, Position] = OrderedDict()

        for position in sorted(positions, key=lambda p: _sort_key(p.key)):
            project = projects.get(position.project_id)
            if project is None:
                project = Position(
                    project_id=position.project_id,
                    asset_class=None,
                    attributes=project_attributes.get((position.project_id, None), _NO_ATTRIBUTES),
                    breakdown={group: AssetAmounts() for group in ASSET_GROUPS},
                )
                projects[position.project_id] = project

            project.cost += position.cost
            project.unrealized_mv += position.unrealized_mv
            project.realized_mv += position.realized_mv

            amounts = project.breakdown[asset_group(position.asset_class)]
            amounts.cost += position.cost
            amounts.unrealized_mv += position.unrealized_mv
            amounts.realized_mv += position.realized_mv

            asset_class = position.asset_class or UNKNOWN_ASSET_CLASS
            if asset_class not in project.asset_classes:
                project.asset_classes = tuple(sorted(project.asset_classes + (asset_class,)))

        return list(projects.values())


position_merger = PositionMerger()
