import streamlit as st
import requests

st.set_page_config(page_title="Transaction Classifier", page_icon="💳")

st.title("💳 Transaction Classifier")

# Config
API_URL = "http://localhost:8000"

# Sidebar
with st.sidebar:
    k = st.slider("Categories to show", min_value=1, max_value=13, value=5)
    try:
        hidden = requests.get(f"{API_URL}/display/visibility", timeout=5).json()["hidden"]
    except (requests.RequestException, KeyError, ValueError):
        hidden = False
    new_hidden = st.toggle("Hide balances on the dashboard", value=hidden)
    if new_hidden != hidden:
        requests.put(f"{API_URL}/display/visibility", params={"hidden": new_hidden}, timeout=5)
        requests.post(f"{API_URL}/display/refresh", timeout=5)

# Input
description = st.text_input("Transaction description")

if st.button("Predict Category", type="primary"):
    with st.spinner("Classifying..."):
        try:
            response = requests.post(
                f"{API_URL}/predict",
                params={"text": description, "k": k},
                timeout=30
            )
            if response.status_code == 200:
                result = response.json()
                st.success(f"**Predicted Category:** {result['top_label']}")
                if result.get("reason") == "model_unavailable":
                    st.warning("The category model is not available right now.")

                for hypothesis in result["hypotheses"]:
                    prob = hypothesis["probability"]
                    st.progress(prob, text=f"{hypothesis['category']}: {prob:.1%}")
            else:
                st.error(f"Error: {response.status_code}")
        except requests.RequestException as e:
            st.error(f"Error: {e}")
