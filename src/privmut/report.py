from __future__ import annotations

import datetime as _dt
import logging
from pathlib import Path
from typing import Any, Dict

from jinja2 import Template

from .plotting import plot_candidate_hist, plot_decision_counts

logger = logging.getLogger(__name__)


_REPORT_TEMPLATE = Template(
    """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>privmut Report</title>
  <style>
    body { font-family: Arial, Helvetica, sans-serif; margin: 24px; }
    code, pre { background: #f6f8fa; padding: 2px 4px; border-radius: 4px; }
    h1, h2, h3 { margin-top: 1.2em; }
    table { border-collapse: collapse; margin-top: 0.6em; }
    th, td { border: 1px solid #ddd; padding: 8px; }
    th { background: #f2f2f2; text-align: left; }
    .grid { display: grid; grid-template-columns: 1fr 1fr; gap: 16px; }
    .card { border: 1px solid #ddd; border-radius: 8px; padding: 12px; }
    .small { color: #666; font-size: 0.9em; }
    .warn { color: #a15c00; }
    img { max-width: 100%; height: auto; border: 1px solid #eee; border-radius: 6px; }
  </style>
</head>
<body>

<h1>privmut Report</h1>
<p class="small">Generated: {{ generated_at }}</p>

<h2>Run summary</h2>
<div class="grid">
  <div class="card">
    <h3>Inputs</h3>
    <table>
      <tr><th>VCF</th><td><code>{{ summary.vcf_path }}</code></td></tr>
      <tr><th>Output</th><td><code>{{ summary.output }}</code></td></tr>
      <tr><th>Samples</th><td>{{ summary.samples }}</td></tr>
      <tr><th>Runtime (s)</th><td>{{ "%.1f"|format(summary.runtime_seconds) }}</td></tr>
    </table>
  </div>
  <div class="card">
    <h3>Thresholds</h3>
    <table>
    {% for key, value in config_rows %}
      <tr><th>{{ key }}</th><td>{{ value }}</td></tr>
    {% endfor %}
    </table>
  </div>
</div>

{% if summary.warnings %}
<h2>Warnings</h2>
<ul>
  {% for w in summary.warnings %}<li class="warn">{{ w }}</li>{% endfor %}
</ul>
{% endif %}

<h2>Records</h2>
<table>
  <tr><th>Records read</th><td>{{ counts.records_total }}</td></tr>
  <tr><th>Skipped by quality</th><td>{{ counts.records_skipped_quality }}</td></tr>
  <tr><th>Skipped by FILTER selection</th><td>{{ counts.records_skipped_filter }}</td></tr>
  <tr><th>Without candidate samples</th><td>{{ counts.records_without_candidates }}</td></tr>
  <tr><th>Alleles evaluated</th><td>{{ counts.alleles_evaluated }}</td></tr>
  <tr><th>Alleles emitted</th><td>{{ counts.alleles_emitted }}</td></tr>
  <tr><th>Alleles dropped</th><td>{{ counts.alleles_dropped }}</td></tr>
</table>

<div class="grid">
  <div class="card">
    <h3>Drop reasons</h3>
    <table>
    {% for reason, n in summary.dropped_by_reason.items() %}
      <tr><th>{{ reason }}</th><td>{{ n }}</td></tr>
    {% else %}
      <tr><td>none</td></tr>
    {% endfor %}
    </table>
  </div>
  <div class="card">
    <h3>Masked (FILTER tags)</h3>
    <table>
    {% for tag, n in summary.masked_by_tag.items() %}
      <tr><th>{{ tag }}</th><td>{{ n }}</td></tr>
    {% else %}
      <tr><td>none</td></tr>
    {% endfor %}
    </table>
  </div>
</div>

<h2>Plots</h2>
<div class="grid">
  <div class="card">
    <h3>Allele decisions</h3>
    <img src="{{ plots.decision_counts }}" alt="decision counts">
  </div>
  <div class="card">
    <h3>Candidate samples per record</h3>
    <img src="{{ plots.candidate_hist }}" alt="candidate count histogram">
  </div>
</div>

<h2>Interpretation notes</h2>
<ul>
  <li>Per-sample filters (LowDepth, StrandBias, LibraryBias, LowSplitSupport) only fire when every candidate sample fails them.</li>
  <li>Masked records keep their tag in FILTER; dropped alleles are absent from the output.</li>
</ul>

<hr>
<p class="small">privmut {{ version }}</p>
</body>
</html>"""
)


def render_report(
    *,
    outdir: str | Path,
    version: str,
    summary: Dict[str, Any],
) -> Path:
    """Write report.html plus its plots into ``outdir``."""
    outdir = Path(outdir)
    plots_dir = outdir / "plots"
    plots_dir.mkdir(parents=True, exist_ok=True)

    decision_png = plots_dir / "decision_counts.png"
    candidate_png = plots_dir / "candidate_hist.png"
    counts = summary.get("counts", {})

    plot_decision_counts(
        dropped_by_reason=summary.get("dropped_by_reason", {}),
        masked_by_tag=summary.get("masked_by_tag", {}),
        emitted=int(counts.get("alleles_emitted", 0)),
        out_png=decision_png,
    )
    plot_candidate_hist(
        candidate_count_hist=summary.get("candidate_count_hist", {}),
        out_png=candidate_png,
    )

    config_rows = [
        (k, v)
        for k, v in sorted(summary.get("config", {}).items())
        if v not in (None, [], False, 0)
    ]

    html = _REPORT_TEMPLATE.render(
        generated_at=_dt.datetime.now().isoformat(timespec="seconds"),
        version=version,
        summary=summary,
        counts=counts,
        config_rows=config_rows,
        plots={
            "decision_counts": str(Path("plots") / decision_png.name),
            "candidate_hist": str(Path("plots") / candidate_png.name),
        },
    )

    out_path = outdir / "report.html"
    out_path.write_text(html, encoding="utf-8")
    logger.info("Report written: %s", out_path)
    return out_path
