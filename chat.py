# Run the backend first:  uvicorn main:app --port 8000
# Then:                    streamlit run chat.py

import os

import pandas as pd
import requests
import streamlit as st

API_URL = os.environ.get("RHESUS_API_URL", "http://localhost:8000")

st.set_page_config(page_title="Dr. Rhesus", layout="wide")
st.title("🧬 Dr. Rhesus")

if "messages" not in st.session_state:
    st.session_state.messages = []


def hits_table(hits):
    """Build the display table for a list of hit dicts"""
    df = pd.DataFrame(hits, columns=["description", "score", "e_value", "identity"])
    df["identity"] = (df["identity"].astype(float) * 100).round(1).astype(str) + "%"
    df.index = range(1, len(df) + 1)
    return df.rename(columns={
        "description": "Description",
        "score": "Score",
        "e_value": "E-value",
        "identity": "Identity",
    })


def post_chat(message):
    history = [
        {"role": m["role"], "content": m["content"]}
        for m in st.session_state.messages
        if m.get("content")
    ]
    payload = {
        "message": message,
        "history": history,
        "model": st.session_state.get("selected_model"),
    }
    try:
        response = requests.post(f"{API_URL}/chat", json=payload, timeout=120)
    except requests.exceptions.RequestException:
        return {"prose": "Sorry, the Dr. Rhesus API is not responding.", "tool_calls": [], "actions": []}
    if response.ok:
        return response.json()
    return {"prose": f"Sorry, the API returned {response.status_code}.", "tool_calls": [], "actions": []}


def run_blast(sequence):
    try:
        response = requests.post(f"{API_URL}/blast/search", json={"sequence": sequence}, timeout=900)
    except requests.exceptions.RequestException as e:
        return {"prose": f"BLAST request failed: {e}", "tool_calls": [], "actions": []}
    if not response.ok:
        detail = response.json().get("detail", response.text) if response.headers.get("content-type", "").startswith("application/json") else response.text
        return {"prose": f"BLAST search failed: {detail}", "tool_calls": [], "actions": []}
    data = response.json()
    return {
        "prose": data.get("summary") or f"BLAST job {data['job_id']} finished.",
        "tool_calls": [{"type": "blast_result", "data": data.get("hits", [])}],
        "actions": [],
    }


def render_reply(reply):
    st.markdown(reply.get("prose", ""))
    for call in reply.get("tool_calls", []):
        if call["type"] == "blast_result":
            if call["data"]:
                st.dataframe(hits_table(call["data"]), use_container_width=True)
            else:
                st.info("No significant hits.")
        elif call["type"] == "pdb_viewer":
            pdb_id = call["data"]["pdbId"]
            st.markdown(f"Structure **{pdb_id}**: [RCSB entry](https://www.rcsb.org/structure/{pdb_id}) "
                        f"· [PDB file]({API_URL}/structure/rcsb/{pdb_id})")
        elif call["type"] == "pubmed_summary":
            st.info(call["data"]["summary"])


# Sidebar: model selection and direct BLAST
st.sidebar.header("Model Selection")
st.session_state["selected_model"] = st.sidebar.selectbox(
    "Choose a model",
    ["llama-3.1-8b-instant", "llama-3.3-70b-versatile", "deepseek-r1-distill-llama-70b",
     "meta-llama/llama-4-scout-17b-16e-instruct"],
    index=0
)
st.sidebar.header("Protein BLAST")
blast_sequence = st.sidebar.text_area("Sequence or FASTA", height=150)
if st.sidebar.button("Run BLAST") and blast_sequence.strip():
    with st.spinner("Running BLAST against UniProtKB. This can take a few minutes..."):
        reply = run_blast(blast_sequence)
    st.session_state.messages.append({"role": "user", "content": "Run BLAST on my sequence"})
    st.session_state.messages.append({"role": "assistant", "content": reply["prose"], "reply": reply})

user_input = st.chat_input("Ask Dr. Rhesus about proteins, structures or sequences...")
if user_input:
    reply = post_chat(user_input)
    st.session_state.messages.append({"role": "user", "content": user_input})
    st.session_state.messages.append({"role": "assistant", "content": reply.get("prose", ""), "reply": reply})

for msg in st.session_state.messages:
    with st.chat_message(msg["role"]):
        if msg["role"] == "assistant":
            render_reply(msg["reply"])
        else:
            st.markdown(msg["content"])

if st.session_state.messages:
    last = st.session_state.messages[-1]
    for i, action in enumerate(last.get("reply", {}).get("actions", [])):
        if st.button(action["label"], key=f"action_{len(st.session_state.messages)}_{i}"):
            reply = post_chat(action["prompt"])
            st.session_state.messages.append({"role": "user", "content": action["prompt"]})
            st.session_state.messages.append({"role": "assistant", "content": reply.get("prose", ""), "reply": reply})
            st.rerun()
