"""Default transaction-readiness question bank, seeded into empty databases."""
from __future__ import annotations

SCALE_OPTIONS = [
    {"label": "Not Ready", "value": "1", "score": 1},
    {"label": "Poor", "value": "2", "score": 2},
    {"label": "Fair", "value": "3", "score": 3},
    {"label": "Good", "value": "4", "score": 4},
    {"label": "Excellent", "value": "5", "score": 5},
]

# dimension -> [(text, help_text, is_core)]
DEFAULT_QUESTIONS: dict[str, list[tuple[str, str, bool]]] = {
    "strategic": [
        ("Is there a clear and compelling 3-year strategic plan?",
         "Written plan, board presentations, milestone tracking", True),
        ("Can the CEO articulate a differentiated position in the market?",
         "CEO interview, pitch practice, competitive analysis", True),
        ("Is the investment thesis (organic growth, M&A, GTM expansion) well-defined?",
         "Investment memo, growth strategy, market analysis", True),
        ("Are key growth levers quantified and linked to specific initiatives?",
         "Growth model, initiative tracking, KPI dashboard", True),
        ("Is the company vision tied to a credible path to scale or exit?",
         "Business plan, exit scenarios, comparable companies", True),
    ],
    "operational": [
        ("Does the leadership team have experience aligned with the growth plan?",
         "Leadership resumes, reference checks, track records", True),
        ("Are key roles filled (CEO, Finance, GTM, Ops)?",
         "Org chart, role descriptions, hiring plans", True),
        ("Is there evidence of prior execution success by key leaders?",
         "Performance reviews, reference calls, case studies", True),
        ("Are incentives aligned across the leadership team?",
         "Equity plans, compensation, retention agreements", True),
        ("Are there known gaps that will require hiring or partnering?",
         "Gap analysis, recruiting pipeline", False),
    ],
    "market": [
        ("Is the Ideal Customer Profile clearly defined and validated?",
         "ICP documentation, win/loss analysis", True),
        ("Does the company have defensible differentiation or a moat?",
         "IP, network effects, switching costs", True),
        ("Are competitors mapped with relative positioning?",
         "Competitive matrix, analyst reports", True),
        ("Is TAM/SAM/SOM analysis complete and credible?",
         "Market sizing model, third-party data", True),
        ("Is there market demand data or customer feedback validating traction?",
         "Customer interviews, NPS, pipeline data", True),
    ],
    "financial": [
        ("Are historical financials accurate, complete, and GAAP or close equivalent?",
         "Audited statements, accounting policies", True),
        ("Are normalized EBITDA adjustments justified?",
         "Quality of earnings, adjustment schedule", True),
        ("Are customer/revenue cohorts and margin trends understood?",
         "Cohort analysis, margin bridge", True),
        ("Are projections built on defensible assumptions?",
         "Operating model, assumption book", True),
        ("Is there a use-of-funds model tied to financial outcomes?",
         "Use-of-funds schedule, scenario model", True),
        ("Has the company modeled different capital scenarios (equity, debt, hybrid)?",
         "Capital structure scenarios", False),
    ],
    "technology": [
        ("Is there a professional investor deck that tells a coherent story?",
         "Current deck, narrative review", True),
        ("Is the financial model clean, dynamic, and investor-usable?",
         "Model walkthrough, version control", True),
        ("Is the technology stack documented and scalable?",
         "Architecture diagrams, scalability tests", True),
        ("Are data room materials organized and complete?",
         "Data room index, document checklist", True),
    ],
    "legal": [
        ("Is the corporate structure clean and documented?",
         "Cap table, formation documents", True),
        ("Are IP assignments in place for all employees and contractors?",
         "IP assignment agreements", True),
        ("Are material contracts reviewed for change-of-control provisions?",
         "Contract register, legal review", True),
        ("Is there any pending or threatened litigation?",
         "Litigation summary, counsel letters", True),
        ("Is the company compliant with applicable regulations?",
         "Compliance audits, licenses", True),
    ],
}


def default_question_rows() -> list[dict]:
    """Flatten the bank into insertable row dicts with a running order index."""
    rows: list[dict] = []
    order = 1
    for dimension, questions in DEFAULT_QUESTIONS.items():
        for text, help_text, is_core in questions:
            rows.append({
                "text": text, "help_text": help_text, "dimension": dimension,
                "question_type": "scale", "module": "core", "order_index": order,
                "is_core": is_core, "is_required": is_core, "is_active": True,
                "options": SCALE_OPTIONS,
            })
            order += 1
    return rows
