# streamlit_app.py
import json

import requests
import streamlit as st

from sitesnap.utils import format_size

API_BASE = st.secrets.get("API_BASE", "http://localhost:3000")


def iter_events(job_id: str):
    """Yield the JSON payloads of the job's server-sent events."""
    with requests.get(f"{API_BASE}/api/progress/{job_id}", stream=True, timeout=(5, 60)) as r:
        r.raise_for_status()
        for line in r.iter_lines(decode_unicode=True):
            if line and line.startswith("data: "):
                yield json.loads(line[len("data: "):])


def show_artifact(column, title: str, info: dict):
    with column:
        st.subheader(title)
        image_url = f"{API_BASE}{info['url']}"
        st.image(image_url, use_column_width=True)
        st.caption(f"{info['resolution']} • {format_size(info['size'])} • {info['format'].upper()}")
        if info.get("quality"):
            st.caption(f"JPEG quality {info['quality']}")
        if info.get("over_budget"):
            st.warning("Still larger than the size limit at minimum quality")
        st.markdown(f"[⬇️ Download {info['filename']}]({image_url})")


st.set_page_config(page_title="SiteSnap", page_icon="📷", layout="wide")

st.title("📷 SiteSnap")
st.markdown("Full-page desktop and mobile screenshots, each kept under 5 MB.")
st.markdown("---")

with st.form("screenshot_form"):
    url = st.text_input("URL", placeholder="https://example.com")
    submitted = st.form_submit_button("📷 Capture", use_container_width=True)

if submitted:
    if not url.strip():
        st.error("❌ Please enter a URL")
    else:
        try:
            r = requests.post(f"{API_BASE}/api/screenshot", json={"url": url.strip()}, timeout=10)
        except requests.RequestException as e:
            st.error(f"❌ Connection error: {e}")
            r = None

        if r is not None and not r.ok:
            st.error(f"❌ {r.json().get('detail', r.text)}")
        elif r is not None:
            job_id = r.json()["job_id"]
            st.info(f"**Job ID:** `{job_id}`")
            bar = st.progress(0, text="Waiting for the server...")
            final = None
            try:
                for event in iter_events(job_id):
                    bar.progress(event["progress"], text=event["message"])
                    if event["status"] in ("completed", "error"):
                        final = event
                        break
            except requests.RequestException as e:
                st.error(f"❌ Lost connection to the progress stream: {e}")

            if final and final["status"] == "error":
                st.error(f"❌ {final['message']}")
            elif final:
                st.success("✅ Screenshots captured!")
                result = final["result"]
                col_desktop, col_mobile = st.columns([2, 1])
                show_artifact(col_desktop, "🖥️ Desktop", result["desktop"])
                show_artifact(col_mobile, "📱 Mobile", result["mobile"])
