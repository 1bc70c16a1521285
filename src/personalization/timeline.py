"""Default timeline phase templates for the buy, sell and browse flows."""

from dataclasses import dataclass, field

from personalization.models import ActionableStep, TimelinePhase


@dataclass(frozen=True)
class PhaseTemplate:
    id: str
    name: str
    base_timeline: str
    description: str
    suggested_steps: tuple[str, ...]
    optional: bool = False
    conditional_note: str = ""


@dataclass(frozen=True)
class FlowTemplate:
    flow: str
    display_name: str
    description: str
    default_total_time: str
    phases: tuple[PhaseTemplate, ...] = field(default_factory=tuple)


BUY_TEMPLATE = FlowTemplate(
    flow="buy",
    display_name="Home Buying Timeline",
    description="Step-by-step guide for purchasing a home",
    default_total_time="4-6 months",
    phases=(
        PhaseTemplate(
            "financial-prep",
            "Financial Preparation",
            "Week 1-2",
            "Get your finances in order and understand your buying power",
            (
                "Get pre-approved for a mortgage",
                "Review your credit score and fix any issues",
                "Calculate your total budget including down payment and closing costs",
                "Save for down payment (typically 3-20% of purchase price)",
                "Gather financial documents (tax returns, pay stubs, bank statements)",
            ),
            conditional_note="Skip if already pre-approved",
        ),
        PhaseTemplate(
            "house-hunting",
            "House Hunting",
            "Week 2-7",
            "Search for properties that meet your needs and your budget",
            (
                "Create a list of must-haves vs nice-to-haves",
                "Tour properties with your agent",
                "Attend open houses in target neighborhoods",
                "Research neighborhoods (schools, amenities, commute)",
                "Narrow down to top 2-3 properties",
            ),
        ),
        PhaseTemplate(
            "make-offer",
            "Make an Offer",
            "Week 7-9",
            "Submit a competitive offer on your chosen property",
            (
                "Work with your agent to determine fair offer price",
                "Include appropriate contingencies (inspection, financing, appraisal)",
                "Submit offer letter with pre-approval",
                "Negotiate terms if there are counteroffers",
            ),
        ),
        PhaseTemplate(
            "under-contract",
            "Under Contract",
            "Week 9-13",
            "Complete due diligence and finalize financing",
            (
                "Schedule and attend home inspection",
                "Negotiate repairs or credits based on inspection findings",
                "Complete appraisal with your lender",
                "Finalize mortgage and review loan documents",
                "Purchase homeowners insurance",
            ),
        ),
        PhaseTemplate(
            "closing",
            "Closing Day",
            "Week 13-15",
            "Sign paperwork and receive keys to your new home",
            (
                "Review closing disclosure 3 days before closing",
                "Wire funds or bring certified check for closing costs",
                "Attend closing appointment and sign documents",
                "Receive keys and set up utilities",
            ),
        ),
        PhaseTemplate(
            "post-closing",
            "Post-Closing",
            "Week 15+",
            "Settle into your new home",
            (
                "Update your address with USPS, banks, and services",
                "File homestead exemption if applicable",
                "Set up maintenance schedule for your home",
            ),
            optional=True,
        ),
    ),
)

SELL_TEMPLATE = FlowTemplate(
    flow="sell",
    display_name="Home Selling Timeline",
    description="Step-by-step guide for selling your home",
    default_total_time="4-5 months",
    phases=(
        PhaseTemplate(
            "home-prep",
            "Prepare Your Home",
            "Week 1-4",
            "Make your home market-ready to attract buyers and maximize value",
            (
                "Declutter and deep clean every room",
                "Make necessary repairs (fix leaks, patch walls, etc.)",
                "Consider professional staging",
                "Improve curb appeal (landscaping, paint, etc.)",
            ),
        ),
        PhaseTemplate(
            "set-price",
            "Set Your Listing Price",
            "Week 4-5",
            "Work with your agent to determine optimal listing price",
            (
                "Review comparative market analysis (CMA) with your agent",
                "Discuss pricing strategy based on market conditions",
                "Set competitive listing price",
            ),
        ),
        PhaseTemplate(
            "list-property",
            "List Your Property",
            "Week 5-6",
            "Create compelling listing and go live on the market",
            (
                "Schedule professional photography",
                "Create detailed listing description",
                "List on MLS and major real estate websites",
                "Prepare for showings (clean, depersonalize)",
            ),
        ),
        PhaseTemplate(
            "marketing-showings",
            "Marketing & Showings",
            "Week 6-10",
            "Market your home and accommodate buyer showings",
            (
                "Host open houses (typically weekends)",
                "Accommodate private showings",
                "Gather feedback from showings",
                "Adjust price or strategy if needed",
            ),
        ),
        PhaseTemplate(
            "review-offers",
            "Review & Negotiate Offers",
            "Week 10-12",
            "Evaluate offers and negotiate best terms",
            (
                "Review all offers with your agent",
                "Compare price, contingencies, and buyer qualifications",
                "Counter-negotiate if needed",
                "Accept best offer",
            ),
        ),
        PhaseTemplate(
            "under-contract-sell",
            "Under Contract",
            "Week 12-16",
            "Work with buyer through due diligence period",
            (
                "Accommodate buyer's home inspection",
                "Negotiate repair requests or credits",
                "Cooperate with appraiser",
                "Address any title issues",
            ),
        ),
        PhaseTemplate(
            "closing-sell",
            "Closing",
            "Week 16-18",
            "Complete the sale and transfer ownership",
            (
                "Review closing statement",
                "Attend closing appointment",
                "Hand over keys, garage openers, and manuals",
                "Cancel utilities and forward mail",
            ),
        ),
    ),
)

BROWSE_TEMPLATE = FlowTemplate(
    flow="browse",
    display_name="Real Estate Exploration Timeline",
    description="Educational guide for those exploring real estate options",
    default_total_time="2-3 months",
    phases=(
        PhaseTemplate(
            "understand-options",
            "Understand Your Options",
            "Week 1-2",
            "Explore whether buying, selling, or investing is right for you",
            (
                "Assess your current housing situation",
                "Research buy vs rent considerations",
                "Understand current market conditions",
            ),
        ),
        PhaseTemplate(
            "financial-education",
            "Financial Education",
            "Week 2-4",
            "Learn about real estate financing and costs",
            (
                "Learn how mortgages work (fixed vs ARM, terms, etc.)",
                "Understand down payment requirements",
                "Check your credit score and understand its impact",
                "Explore first-time buyer programs if applicable",
            ),
        ),
        PhaseTemplate(
            "market-research",
            "Market Research",
            "Week 4-8",
            "Research neighborhoods and trends in the target market",
            (
                "Explore different neighborhoods",
                "Analyze price trends in areas of interest",
                "Attend open houses to get a feel for the market",
            ),
        ),
        PhaseTemplate(
            "decision-time",
            "Decision Time",
            "Week 8-12",
            "Decide if and when you're ready to move forward",
            (
                "Evaluate your timeline (ready now vs 6-12 months)",
                "Connect with a real estate agent for guidance",
                "Get pre-qualified to understand your options",
            ),
        ),
        PhaseTemplate(
            "next-steps",
            "Next Steps",
            "Week 12+",
            "Take action based on your decision",
            (
                "If buying: move to the home buying timeline",
                "If selling: move to the home selling timeline",
                "Stay in touch with your agent for updates",
            ),
            optional=True,
        ),
    ),
)

FLOW_TEMPLATES: dict[str, FlowTemplate] = {
    t.flow: t for t in (BUY_TEMPLATE, SELL_TEMPLATE, BROWSE_TEMPLATE)
}


def get_flow_template(flow: str) -> FlowTemplate:
    """Template for a flow; unknown flows get the buying template."""
    return FLOW_TEMPLATES.get(flow, BUY_TEMPLATE)


def step_priority(index: int) -> str:
    if index == 0:
        return "high"
    if index < 3:
        return "medium"
    return "low"


def default_phases(flow: str) -> list[TimelinePhase]:
    """Build editable phases (with empty, unlinked steps) from a flow template."""
    phases = []
    for order, tpl in enumerate(get_flow_template(flow).phases, start=1):
        steps = [
            ActionableStep(id=f"{tpl.id}-step-{n}", title=title, priority=step_priority(n - 1))
            for n, title in enumerate(tpl.suggested_steps, start=1)
        ]
        phases.append(
            TimelinePhase(
                id=tpl.id,
                name=tpl.name,
                description=tpl.description,
                timeline=tpl.base_timeline,
                order=order,
                optional=tpl.optional,
                steps=steps,
            )
        )
    return phases
