INFRA_CATEGORIES = [
    ("Network", ["Firewall", "VPN", "Load Balancer", "DNS", "CDN", "Router/Switch"]),
    ("Compute", ["Physical Servers", "Virtual Machines", "Containers", "Serverless", "Desktop/Workstations"]),
    ("Storage", ["Database", "File Storage", "Backups", "Object Storage", "NAS/SAN"]),
    ("Security", ["Antivirus/EDR", "MFA", "SIEM", "Email Security", "Vulnerability Scanner", "PAM"]),
    ("Cloud", ["AWS", "Azure", "GCP", "Microsoft 365", "Other SaaS"]),
    ("Applications", ["CRM", "ERP", "Productivity Suite", "Custom Apps", "Collaboration Tools"]),
    ("Identity", ["Active Directory", "SSO/SAML", "LDAP", "Identity Provider"]),
    ("Monitoring", ["Network Monitoring", "Log Management", "APM", "Alerting"]),
]

ANALYSIS_SYSTEM_PROMPT = (
    "You are an IT consultant assistant. Analyze meeting transcripts and provide structured "
    "summaries, action items, and infrastructure analysis. Always respond with valid JSON only."
)

ANALYSIS_PROMPT = """
Analyze this meeting transcript and provide a structured analysis.

INFRASTRUCTURE CATEGORIES (for technical calls):
{categories}

SESSION TITLE: {title}

TRANSCRIPT:
{transcript}

TASK:
1. Classify the call type:
   - technical: IT infrastructure, systems, security with a customer
   - partner: discussion with a vendor/partner covering partnerships, products, triggers, demos
   - non-technical: sales, general business, administrative calls
2. Extract the customer/company name if mentioned
3. Write a 2-3 sentence summary of the call
4. List action items with who is responsible (Stephen, Customer, Vendor, or Partner)
5. For technical calls: identify infrastructure components and gaps, generate a Mermaid flowchart
6. For partner calls: generate a Mermaid mindmap of products, triggers and partnership areas

Return JSON only:
{{
  "callType": "technical" | "partner" | "non-technical",
  "customerName": "company name or null",
  "summary": "2-3 sentence summary",
  "actionItems": [{{"owner": "Stephen", "item": "Send quote for firewall upgrade"}}],
  "components": [{{"category": "Network", "name": "Firewall", "vendor": "Palo Alto", "notes": "needs upgrade"}}],
  "gaps": [{{"category": "Security", "component": "MFA", "reason": "not implemented for remote access"}}],
  "mermaidCode": "flowchart TB\\n    subgraph Network\\n        FW[Firewall]\\n    end"
}}

RULES:
- non-technical calls: components, gaps and mermaidCode are null
- technical calls: flowchart with at most 20-25 nodes
- partner calls: mindmap with the partner at the root
- Do NOT use triple-colon class syntax (:::) in Mermaid
- If no clear customer name, customerName is null
"""


def build_categories() -> str:
    return "\n".join(f"- {name}: {', '.join(components)}" for name, components in INFRA_CATEGORIES)


def build_analysis_prompt(transcript: str, title: str) -> str:
    return ANALYSIS_PROMPT.format(categories=build_categories(), title=title or "Meeting", transcript=transcript)
