"""
Dr. Rhesus chat session on top of the Groq client

Every assistant turn is a JSON object with "prose", "tool_calls" and
"actions". Replies are parsed defensively because the model does not always
follow the contract.
"""

import json
import logging
import random
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from blast_models import DISPLAY_HIT_LIMIT, Hit
from blast_results import identity_fraction, to_float

# Configure logging
logging.basicConfig(level=logging.INFO,
                    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("chat_service")

DR_RHESUS_SYSTEM_INSTRUCTION = """
You are Dr. Rhesus, an expert bioinformatics research assistant specializing in protein design.
Your primary role is to assist scientists by integrating data from various bioinformatics sources and performing computational tasks.
You are precise, helpful, and conversational. Get straight to the point and answer directly.

**IMPORTANT RULE**: You MUST ALWAYS respond with a single valid JSON object and nothing else.

The JSON object must have the following structure:
{
  "prose": "Your conversational response to the user. Use markdown for formatting.",
  "tool_calls": [
    { "type": "tool_name", "data": { ... } }
  ],
  "actions": [
    { "label": "Button Label", "prompt": "The full user prompt for that action." }
  ]
}

- "prose": (string, required) Your main textual response.
- "tool_calls": (array, optional) A list of tools to execute.
- "actions": (array, optional) A list of 2-3 suggested next steps for the user.

Available tool calls:

1. Visualize PDB Structure
   - type: "pdb_viewer"
   - data: { "pdbId": "string" }

2. Display BLAST Result
   - type: "blast_result"
   - data: [ { "description": "string", "score": number, "e_value": "string", "identity": number (0-1) }, ... ]
   - The data must be an array of up to 10 hit objects.

3. Display PubMed Summary
   - type: "pubmed_summary"
   - data: { "summary": "string" }

Interaction rules:
- If the request is ambiguous (e.g. "I want to mutate a residue in 1TUP"), ask for the missing information in "prose" and do not use a tool call.
- For general knowledge questions, answer in "prose" and cite your sources. Do not use a tool call.
"""

GREETINGS = [
    "Greetings. I am Dr. Rhesus, your bioinformatics research assistant. How may I help you today?",
    "Hello! Dr. Rhesus at your service. What scientific query can I assist you with?",
    "Welcome to the lab. I am Dr. Rhesus. Ready to dive into some bioinformatics research?",
    "Dr. Rhesus here. I am ready to process your requests. What is our objective today?",
    "Welcome. I am prepared to assist with your bioinformatics needs. What shall we investigate?",
    "Hello. Dr. Rhesus online. How can I facilitate your research?",
]

TOOL_TYPES = ("pdb_viewer", "blast_result", "pubmed_summary")


def random_greeting() -> str:
    return random.choice(GREETINGS)


class ToolCall(BaseModel):
    type: str
    data: Any = None


class SuggestedAction(BaseModel):
    label: str
    prompt: str


class AssistantReply(BaseModel):
    prose: str = ""
    tool_calls: List[ToolCall] = Field(default_factory=list)
    actions: List[SuggestedAction] = Field(default_factory=list)


def error_reply(message: str) -> str:
    """JSON reply used when the model call itself fails"""
    return json.dumps({
        "prose": f"I'm sorry, I encountered an error: {message or 'An unknown error occurred.'}",
        "tool_calls": [],
        "actions": [],
    })


def coerce_blast_hits(data: Any) -> List[Hit]:
    """Turn blast_result tool call data into at most 10 Hits, dropping bad rows"""
    if not isinstance(data, list):
        return []
    hits = []
    for row in data:
        if not isinstance(row, dict):
            continue
        description = row.get("description")
        if not isinstance(description, str) or not description.strip():
            continue
        identity = identity_fraction({"hsp_identity": row.get("identity")})
        if identity is None:
            continue
        e_value = row.get("e_value")
        hits.append(Hit(
            description=description.strip(),
            score=to_float(row.get("score")),
            e_value=str(e_value) if e_value not in (None, "") else "N/A",
            identity=identity,
        ))
        if len(hits) >= DISPLAY_HIT_LIMIT:
            break
    return hits


def _clean_tool_call(raw: Any) -> Optional[ToolCall]:
    if not isinstance(raw, dict) or raw.get("type") not in TOOL_TYPES:
        return None
    data = raw.get("data")
    if raw["type"] == "blast_result":
        data = [hit.to_dict() for hit in coerce_blast_hits(data)]
    elif raw["type"] == "pdb_viewer":
        if not isinstance(data, dict) or not str(data.get("pdbId") or "").strip():
            return None
        data = {"pdbId": str(data["pdbId"]).strip().upper()}
    elif raw["type"] == "pubmed_summary":
        if not isinstance(data, dict) or not isinstance(data.get("summary"), str):
            return None
    return ToolCall(type=raw["type"], data=data)


def parse_assistant_reply(text: str) -> AssistantReply:
    """
    Parse a model reply into an AssistantReply

    Text that is not a JSON object is shown to the user as plain prose.
    Unknown or malformed tool calls and actions are dropped.
    """
    try:
        data = json.loads(text)
    except (TypeError, ValueError):
        logger.warning("Assistant reply was not valid JSON; showing it as prose")
        return AssistantReply(prose=text if isinstance(text, str) else "")
    if not isinstance(data, dict):
        return AssistantReply(prose=str(text))

    prose = data.get("prose")
    tool_calls = []
    raw_calls = data.get("tool_calls")
    for raw in raw_calls if isinstance(raw_calls, list) else []:
        call = _clean_tool_call(raw)
        if call is not None:
            tool_calls.append(call)
    actions = []
    raw_actions = data.get("actions")
    for raw in raw_actions if isinstance(raw_actions, list) else []:
        if isinstance(raw, dict) and isinstance(raw.get("label"), str) and isinstance(raw.get("prompt"), str):
            actions.append(SuggestedAction(label=raw["label"], prompt=raw["prompt"]))

    return AssistantReply(
        prose=prose if isinstance(prose, str) else "",
        tool_calls=tool_calls,
        actions=actions,
    )


class ChatSession:
    """One in-memory conversation with Dr. Rhesus"""

    def __init__(self, client, system_instruction: str = DR_RHESUS_SYSTEM_INSTRUCTION,
                 history: Optional[List[Dict[str, str]]] = None):
        self.client = client
        self.messages: List[Dict[str, str]] = [{"role": "system", "content": system_instruction}]
        for message in history or []:
            if message.get("role") in ("user", "assistant") and message.get("content"):
                self.messages.append({"role": message["role"], "content": message["content"]})

    def send_message(self, message: str) -> str:
        """Send a user message and return the raw JSON reply text"""
        self.messages.append({"role": "user", "content": message})
        try:
            reply = self.client.chat(self.messages, json_mode=True)
        except Exception as e:
            logger.error(f"Error sending message to Groq: {e}")
            return error_reply(str(e))
        self.messages.append({"role": "assistant", "content": reply})
        return reply
