"""Work order cost helpers"""

from typing import Iterable, Optional


def calculate_parts_cost(parts: Optional[Iterable[dict]]) -> float:
    """Sum of price x quantity over parts"""
    return sum(float(p.get("price") or 0) * float(p.get("quantity") or 0) for p in parts or [])


def calculate_labor_cost(labor: Optional[Iterable[dict]]) -> float:
    """Sum of hours x rate over labor lines"""
    return sum(float(item.get("hours") or 0) * float(item.get("rate") or 0) for item in labor or [])


def calculate_work_order_total(parts: Optional[Iterable[dict]], labor: Optional[Iterable[dict]]) -> float:
    return round(calculate_parts_cost(parts) + calculate_labor_cost(labor), 2)


def get_cost_breakdown(work_order) -> dict:
    parts_cost = calculate_parts_cost(work_order.parts)
    labor_cost = calculate_labor_cost(work_order.labor)
    return {
        "partsCost": round(parts_cost, 2),
        "laborCost": round(labor_cost, 2),
        "total": round(parts_cost + labor_cost, 2),
    }
