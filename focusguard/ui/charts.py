"""
Chart backend — QtCharts views for the history tab.

Every public function returns an interactive QChartView.
"""

from __future__ import annotations

import logging
from typing import Dict, List

from PySide6.QtCore import Qt, QMargins
from PySide6.QtGui import QBrush, QColor, QCursor, QFont, QPainter
from PySide6.QtWidgets import QToolTip
from PySide6.QtCharts import (
    QBarCategoryAxis, QBarSeries, QBarSet, QChart, QChartView,
    QHorizontalBarSeries, QValueAxis,
)

from focusguard.analytics.insights import DayStats

logger = logging.getLogger(__name__)

# ── Palette (matches styles.DARK_STYLESHEET) ─────────────────────────────────
BG       = QColor("#181825")
MUTED    = QColor("#a6adc8")
DIM      = QColor("#585b70")
GRID_CLR = QColor("#313244")

BLUE  = "#89b4fa"
RED   = "#f38ba8"
GREEN = "#a6e3a1"
PEACH = "#fab387"


def _base_chart(title: str = "") -> QChart:
    chart = QChart()
    chart.setBackgroundBrush(QBrush(BG))
    chart.setBackgroundRoundness(0)
    chart.setMargins(QMargins(8, 8, 8, 8))
    if title:
        chart.setTitle(title)
        chart.setTitleFont(QFont("Segoe UI", 10))
        chart.setTitleBrush(QBrush(MUTED))
    chart.legend().setVisible(False)
    chart.setAnimationOptions(QChart.AnimationOption.SeriesAnimations)
    chart.setAnimationDuration(400)
    return chart


def _value_axis(label: str = "") -> QValueAxis:
    axis = QValueAxis()
    axis.setLabelsColor(DIM)
    axis.setLabelsFont(QFont("Segoe UI", 8))
    axis.setGridLineColor(GRID_CLR)
    axis.setLineVisible(False)
    axis.setMinorGridLineVisible(False)
    axis.setTitleText(label)
    axis.setTitleBrush(QBrush(DIM))
    return axis


def _cat_axis(categories: List[str]) -> QBarCategoryAxis:
    axis = QBarCategoryAxis()
    axis.append(categories)
    axis.setLabelsColor(MUTED)
    axis.setLabelsFont(QFont("Segoe UI", 8))
    axis.setGridLineVisible(False)
    axis.setLineVisible(False)
    return axis


def make_chart_view(chart: QChart) -> QChartView:
    view = QChartView(chart)
    view.setRenderHint(QPainter.RenderHint.Antialiasing)
    view.setStyleSheet("background: transparent; border: none;")
    view.setMinimumHeight(200)
    return view


# ── Public chart functions ───────────────────────────────────────────────────

def plot_daily_focus(stats: List[DayStats]) -> QChartView:
    """Focused minutes per day with the day's average score on hover."""
    chart = _base_chart("focused minutes, last 7 days")
    if not any(s.sessions for s in stats):
        chart.setTitle("focused minutes — no sessions yet")
        return make_chart_view(chart)

    bar_set = QBarSet("minutes")
    for s in stats:
        bar_set.append(s.total_minutes)
    bar_set.setColor(QColor(BLUE))
    bar_set.setBorderColor(QColor(0, 0, 0, 0))

    series = QBarSeries()
    series.append(bar_set)
    series.setBarWidth(0.6)

    def _hover(status, idx, barset):
        if status:
            day = stats[idx]
            QToolTip.showText(
                QCursor.pos(),
                f"{day.label}: {day.total_minutes} min, "
                f"score {day.avg_score}, {day.total_drifts} drifts",
            )

    series.hovered.connect(_hover)

    x_axis = _cat_axis([s.label for s in stats])
    y_axis = _value_axis("min")
    chart.addAxis(x_axis, Qt.AlignmentFlag.AlignBottom)
    chart.addAxis(y_axis, Qt.AlignmentFlag.AlignLeft)
    chart.addSeries(series)
    series.attachAxis(x_axis)
    series.attachAxis(y_axis)
    y_axis.setRange(0, max(s.total_minutes for s in stats) * 1.2 + 1)
    return make_chart_view(chart)


def plot_drift_types(counts: Dict[str, int]) -> QChartView:
    chart = _base_chart("where focus went")
    if not counts:
        chart.setTitle("where focus went — no drifts logged")
        return make_chart_view(chart)

    labels = list(counts.keys())
    series = QHorizontalBarSeries()
    colors = [RED, PEACH, GREEN, BLUE]
    for i, label in enumerate(labels):
        bar_set = QBarSet(label.replace("_", " "))
        bar_set.append(counts[label])
        bar_set.setColor(QColor(colors[i % len(colors)]))
        bar_set.setBorderColor(QColor(0, 0, 0, 0))
        series.append(bar_set)
    series.setBarWidth(0.5)

    def _hover(status, idx, barset):
        if status:
            QToolTip.showText(QCursor.pos(), f"{barset.label()}: {int(barset.at(idx))}")

    series.hovered.connect(_hover)

    y_axis = _cat_axis(["drifts"])
    x_axis = _value_axis()
    chart.addAxis(x_axis, Qt.AlignmentFlag.AlignBottom)
    chart.addAxis(y_axis, Qt.AlignmentFlag.AlignLeft)
    chart.addSeries(series)
    series.attachAxis(x_axis)
    series.attachAxis(y_axis)
    x_axis.setRange(0, max(counts.values()) * 1.15 + 1)
    return make_chart_view(chart)
