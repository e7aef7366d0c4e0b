"""Chart.js payload rendering for comparison views.

Charts are rendered from analysis-layer series into plain `labels`/`datasets`
dictionaries so views can return them as JSON without further shaping.
"""
