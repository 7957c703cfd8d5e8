import streamlit as st
st.set_page_config(page_title="MediHort AI", page_icon="🌿", layout="wide")
import html
import logging

# Keys, table names and AI backend selection all come from .env
from api_config import AI_BACKEND, GEMINI_API_KEY, GEMINI_MODEL, SUPABASE_URL, SUPABASE_ANON_KEY
from edge_functions import EdgeFunctionsClient
from gemini_consultant import GeminiConsultant
from plant_auth import (
    SupabaseConfigError, access_token, current_user, get_supabase_client,
    sign_in, sign_out, sign_up, user_display,
)
from plant_db import plant_categories, search_plants
from ui_state import (
    VIEW_HOME, VIEW_SIGN_IN, chat_loading, close_analysis, drain_notices, error_message,
    favorite_busy, init_state, load_plant_list, notify, reload_favorites, request_favorite_toggle,
    run_analysis, run_chat_turn, run_favorite_toggle, start_analysis, submit_chat_input,
)

logger = logging.getLogger(__name__)

ALL_CATEGORIES = "All categories"

HERO_FEATURES = [
    {"icon": "🌿", "title": "500+ Medicinal Plants", "description": "Comprehensive database of therapeutic species"},
    {"icon": "✨", "title": "AI-Powered Analysis", "description": "Advanced insights from machine learning"},
    {"icon": "👥", "title": "Expert Guidance", "description": "Professional horticultural consultation"},
]

# ===== Page CSS =====
PAGE_CSS = """
<style>
    .brand { font-size: 1.4rem; font-weight: 700; color: #2f7d4f; }
    .hero { text-align: center; padding: 2.5rem 1rem 1rem 1rem; }
    .hero-pill { display: inline-block; background: rgba(47,125,79,0.1); color: #2f7d4f; border: 1px solid rgba(47,125,79,0.2);
                 border-radius: 999px; padding: 4px 14px; font-size: 0.85rem; font-weight: 500; }
    .hero h1 { font-size: 3.2rem; line-height: 1.1; margin: 1rem 0; }
    .hero h1 .accent { color: #2f7d4f; }
    .hero p.tagline { font-size: 1.25rem; color: #666; max-width: 46rem; margin: 0 auto; }
    .hero-links { margin-top: 1.5rem; }
    .hero-links a { display: inline-block; margin: 0 0.4rem; padding: 10px 26px; border-radius: 8px; font-weight: 600;
                    text-decoration: none; }
    .hero-links a.primary { background: #2f7d4f; color: white; }
    .hero-links a.glass { background: rgba(47,125,79,0.08); color: #2f7d4f; border: 1px solid rgba(47,125,79,0.25); }
    .feature-tile { text-align: center; padding: 1.2rem; border-radius: 12px; border: 1px solid #e6e6e6; }
    .feature-tile .icon { font-size: 1.6rem; }
    .section-title { text-align: center; color: #2f7d4f; margin-bottom: 0; }
    .section-caption { text-align: center; color: #777; margin-bottom: 1.5rem; }
    .plant-img { width: 100%; height: 192px; object-fit: cover; border-radius: 8px; }
    .category-badge { display: inline-block; background: #2f7d4f; color: white; border-radius: 6px; padding: 2px 8px;
                      font-size: 0.75rem; margin-top: 6px; }
    .use-badge { display: inline-block; border: 1px solid #ccc; border-radius: 6px; padding: 1px 7px; font-size: 0.72rem;
                 margin: 2px 2px 0 0; }
    .compound-chip { display: inline-block; background: rgba(47,125,79,0.1); color: #2f7d4f; border-radius: 999px;
                     padding: 3px 12px; font-size: 0.75rem; margin: 2px; }
    .clamp-2 { display: -webkit-box; -webkit-line-clamp: 2; -webkit-box-orient: vertical; overflow: hidden;
               font-size: 0.9rem; color: #444; }
    .insights { border: 1px solid #e6e6e6; border-radius: 8px; padding: 1rem 1.2rem; white-space: pre-wrap; }
    .user-message { background: #2f7d4f; color: white; border-radius: 18px 18px 0 18px; padding: 8px 14px; margin: 3px 0 3px auto;
                    width: fit-content; max-width: 80%; word-wrap: break-word; white-space: pre-wrap; }
    .bot-message { background: #f1f3f1; color: #000; border-radius: 18px 18px 18px 0; padding: 8px 14px; margin: 3px auto 3px 0;
                   width: fit-content; max-width: 80%; word-wrap: break-word; white-space: pre-wrap; }
    .message-meta { font-size: 0.70rem; color: #777; margin-top: 3px; }
    .user-message .message-meta { text-align: right; color: #dfeee5; }
    .footer { text-align: center; color: #777; font-size: 0.85rem; padding: 2rem 0 1rem 0; border-top: 1px solid #eee; }
</style>
"""


def esc(value) -> str:
    return html.escape(str(value or ""))


# =======================================================
# ===== Backends =====
# =======================================================

@st.cache_resource(show_spinner=False)
def get_ai_backend():
    """The AI collaborator for insights and chat. Both backends are stateless, so one is shared."""
    if AI_BACKEND == "gemini":
        logger.info("Using Gemini directly (%s) for AI features", GEMINI_MODEL)
        return GeminiConsultant(GEMINI_API_KEY, model=GEMINI_MODEL)
    return EdgeFunctionsClient(SUPABASE_URL or "", SUPABASE_ANON_KEY or "")


def show_notices():
    for notice in drain_notices(st.session_state):
        body = f"**{notice['title']}**"
        if notice.get("description"):
            body += f"\n\n{notice['description']}"
        icon = "⚠️" if notice.get("variant") == "destructive" else "✅"
        st.toast(body, icon=icon)


def current_access_token(client):
    if client is None:
        return None
    try:
        return access_token(client)
    except Exception as e:
        logger.warning("Could not read access token: %s", e)
        return None


# =======================================================
# ===== Navigation =====
# =======================================================

def handle_sign_out(client):
    try:
        sign_out(client)
        notify(st.session_state, "Signed out successfully")
    except Exception as e:
        logger.error("Sign out failed: %s", e)
        notify(st.session_state, "Error", error_message(e, "Failed to sign out"), variant="destructive")
    st.session_state.favorite_ids = set()
    st.session_state.favorites_user = None
    st.session_state.view = VIEW_HOME
    st.rerun()


def display_navigation(client, user):
    brand_col, _, user_col, button_col = st.columns([4, 3, 3, 1.4], vertical_alignment="center")
    with brand_col:
        st.markdown('<span class="brand">🌿 MediHort AI</span>', unsafe_allow_html=True)

    if user is not None:
        with user_col:
            st.caption(f"👤 {user_display(user)}")
        with button_col:
            if st.button("Sign Out", key="nav_sign_out", use_container_width=True):
                handle_sign_out(client)
    else:
        with button_col:
            if st.button("Sign In", key="nav_sign_in", type="primary", use_container_width=True,
                         disabled=client is None):
                st.session_state.view = VIEW_SIGN_IN
                st.rerun()
    st.divider()


def display_sign_in(client):
    """Email/password sign-in, with account creation for new users."""
    _, form_col, _ = st.columns([1, 2, 1])
    with form_col:
        st.header("🔑 Sign In")
        st.caption("Sign in to save your favorite medicinal plants.")
        with st.form("sign_in_form"):
            email = st.text_input("Email", key="sign_in_email")
            password = st.text_input("Password", type="password", key="sign_in_password")
            sign_in_col, sign_up_col = st.columns(2)
            with sign_in_col:
                submitted_sign_in = st.form_submit_button("Sign In", type="primary", use_container_width=True)
            with sign_up_col:
                submitted_sign_up = st.form_submit_button("Create Account", use_container_width=True)

        if submitted_sign_in or submitted_sign_up:
            authenticated = False
            try:
                if submitted_sign_in:
                    user = sign_in(client, email, password)
                    notify(st.session_state, "Welcome back!", user_display(user))
                else:
                    user = sign_up(client, email, password)
                    if current_user(client) is None:
                        # confirmation email pending, no session yet
                        notify(st.session_state, "Account created", "Check your email to confirm your account.")
                    else:
                        notify(st.session_state, "Account created", user_display(user))
                authenticated = True
            except ValueError as e:
                st.warning(str(e))
            except Exception as e:
                logger.warning("Authentication failed for %s: %s", email, e)
                st.error(error_message(e, "Authentication failed"))

            if authenticated:
                st.session_state.favorites_user = None
                st.session_state.view = VIEW_HOME
                st.rerun()

        if st.button("← Back to plants", key="sign_in_back"):
            st.session_state.view = VIEW_HOME
            st.rerun()


# =======================================================
# ===== Hero =====
# =======================================================

def display_hero():
    st.markdown("""
        <div class="hero">
            <span class="hero-pill">✨ Powered by Advanced AI Technology</span>
            <h1><span class="accent">Medical Horticulture</span><br>Meets AI Innovation</h1>
            <p class="tagline">Discover the therapeutic power of plants with AI-driven insights, research-backed data,
            and personalized horticultural guidance for medical applications.</p>
            <div class="hero-links">
                <a class="primary" href="#plants-section" target="_self">🌿 Explore Plants</a>
                <a class="glass" href="#ai-consultant" target="_self">👥 AI Consultant</a>
            </div>
        </div>
    """, unsafe_allow_html=True)

    feature_cols = st.columns(3)
    for col, feature in zip(feature_cols, HERO_FEATURES):
        with col:
            st.markdown(f"""
                <div class="feature-tile">
                    <div class="icon">{feature['icon']}</div>
                    <h4>{feature['title']}</h4>
                    <p style="color: #777; font-size: 0.9rem;">{feature['description']}</p>
                </div>
            """, unsafe_allow_html=True)
    st.write("")


# =======================================================
# ===== Plant Grid & Cards =====
# =======================================================

@st.dialog("🌿 Plant Analysis", width="large", on_dismiss=lambda: close_analysis(st.session_state))
def show_analysis_dialog(backend, token):
    analysis = st.session_state.get("analysis")
    if not analysis:
        return
    plant = analysis["plant"]

    st.subheader(plant["name"])
    st.markdown(f"*{plant['scientific_name']}*")
    if plant.get("image_url"):
        st.markdown(f'<img class="plant-img" style="height: 256px;" src="{esc(plant["image_url"])}" alt="{esc(plant["name"])}">',
                    unsafe_allow_html=True)

    st.markdown("#### Description")
    st.write(plant["description"])

    st.markdown("#### Medical Uses")
    st.markdown("\n".join(f"- {use}" for use in plant["medical_uses"]) or "_None listed_")

    st.markdown("#### Active Compounds")
    chips = "".join(f'<span class="compound-chip">{esc(c)}</span>' for c in plant["active_compounds"])
    st.markdown(chips or "<i>None listed</i>", unsafe_allow_html=True)

    if analysis.get("analyzing"):
        with st.spinner("Generating AI insights..."):
            run_analysis(st.session_state, backend, token)
        show_notices()

    if plant.get("ai_insights"):
        st.markdown("#### ✨ AI-Generated Insights")
        st.markdown(f'<div class="insights">{esc(plant["ai_insights"])}</div>', unsafe_allow_html=True)


def display_plant_card(plant, is_favorited, busy, backend, token):
    plant_id = plant["id"]
    with st.container(border=True):
        if plant.get("image_url"):
            st.markdown(f'<img class="plant-img" src="{esc(plant["image_url"])}" alt="{esc(plant["name"])}">',
                        unsafe_allow_html=True)
        if plant.get("category"):
            st.markdown(f'<span class="category-badge">{esc(plant["category"])}</span>', unsafe_allow_html=True)

        st.markdown(f"### {plant['name']}")
        st.markdown(f"*{plant['scientific_name']}*")
        st.markdown(f'<p class="clamp-2">{esc(plant["description"])}</p>', unsafe_allow_html=True)

        uses = plant["medical_uses"][:3]
        if uses:
            st.caption("**Medical Uses:**")
            st.markdown("".join(f'<span class="use-badge">{esc(u)}</span>' for u in uses), unsafe_allow_html=True)
        st.write("")

        fav_col, analyze_col = st.columns([1, 4])
        with fav_col:
            st.button(
                "❤️" if is_favorited else "🤍",
                key=f"fav_{plant_id}",
                disabled=busy,
                help="Remove from favorites" if is_favorited else "Add to favorites",
                on_click=request_favorite_toggle,
                args=(st.session_state, plant_id),
            )
        with analyze_col:
            if st.button("✨ AI Analysis", key=f"analyze_{plant_id}", type="secondary", use_container_width=True):
                start_analysis(st.session_state, plant)
                show_analysis_dialog(backend, token)


def display_plants_grid(client, user, backend, token):
    st.markdown('<h2 id="plants-section" class="section-title">Medicinal Plant Database</h2>', unsafe_allow_html=True)
    st.markdown('<p class="section-caption">Explore our comprehensive collection of therapeutic plants</p>',
                unsafe_allow_html=True)

    # --- Fetch once per browser session ---
    if not st.session_state.plants_loaded:
        with st.spinner("Loading plants..."):
            load_plant_list(st.session_state, client)
        show_notices()

    user_id = getattr(user, "id", None)
    if st.session_state.favorites_user != user_id:
        reload_favorites(st.session_state, client, user)

    plants = st.session_state.plants
    favorite_ids = st.session_state.favorite_ids

    # --- Filters ---
    search_col, category_col, fav_col, refresh_col = st.columns([4, 2, 2, 1], vertical_alignment="bottom")
    with search_col:
        query = st.text_input("Search plants", placeholder="Search by name, scientific name or use...",
                              key="plant_search")
    with category_col:
        category = st.selectbox("Category", [ALL_CATEGORIES] + plant_categories(plants), key="plant_category")
    with fav_col:
        favorites_only = st.toggle("❤️ Favorites only", key="favorites_only", disabled=user is None)
    with refresh_col:
        if st.button("🔄", key="refresh_plants", help="Reload plants"):
            st.session_state.plants_loaded = False
            st.rerun()

    shown = search_plants(
        plants,
        query=query,
        category=None if category == ALL_CATEGORIES else category,
        favorites_only=favorites_only and user is not None,
        favorite_ids=favorite_ids,
    )

    if not plants:
        st.info("No plants available right now.")
    elif not shown:
        st.info("No plants match your search.")

    busy = favorite_busy(st.session_state)
    for row_start in range(0, len(shown), 3):
        cols = st.columns(3)
        for col, plant in zip(cols, shown[row_start:row_start + 3]):
            with col:
                display_plant_card(plant, plant["id"] in favorite_ids, busy, backend, token)

    # --- Process Pending Favorite Toggle ---
    # cards above were rendered disabled while this runs
    if busy:
        with st.spinner("Updating favorites..."):
            run_favorite_toggle(st.session_state, client)
        st.rerun()


# =======================================================
# ===== AI Consultant =====
# =======================================================

def display_ai_consultant(backend, token):
    st.write("")
    st.markdown('<h2 id="ai-consultant" class="section-title">AI Horticultural Consultant</h2>', unsafe_allow_html=True)
    st.markdown('<p class="section-caption">Ask questions about medicinal plants, cultivation, or therapeutic applications</p>',
                unsafe_allow_html=True)

    loading = chat_loading(st.session_state)
    _, chat_col, _ = st.columns([1, 4, 1])
    with chat_col:
        chat_container = st.container(height=400, border=True)
        with chat_container:
            history = st.session_state.get("chat_history", [])
            if not history:
                st.markdown("""
                    <div style="text-align: center; padding-top: 100px;">
                        <div style="font-size: 2rem;">🤖</div>
                        <p style="font-weight: 600; font-size: 1.1rem; margin-bottom: 4px;">Welcome to AI Consultation</p>
                        <p style="color: #777; font-size: 0.9rem;">Ask me anything about medicinal plants, their uses, or cultivation techniques</p>
                    </div>
                """, unsafe_allow_html=True)
            for message in history:
                content = esc(message.get("content", ""))
                time = message.get("time", "")
                if message.get("role") == "user":
                    st.markdown(f'<div class="user-message">{content}<div class="message-meta">You • {time}</div></div>',
                                unsafe_allow_html=True)
                else:
                    st.markdown(f'<div class="bot-message">🤖 {content}<div class="message-meta">MediHort AI • {time}</div></div>',
                                unsafe_allow_html=True)

        # Enter submits and clears the box, Shift+Enter adds a newline
        prompt = st.chat_input("Ask about medicinal plants...", key="consultant_input", disabled=loading)
        if prompt and submit_chat_input(st.session_state, prompt):
            st.rerun()

        # --- Process Bot Response ---
        if loading:
            with chat_container:
                with st.spinner("MediHort AI is thinking..."):
                    run_chat_turn(st.session_state, backend, token)
            st.rerun()


def display_footer():
    st.markdown('<div class="footer">© 2025 MediHort AI - Advancing Medical Horticulture Through Technology</div>',
                unsafe_allow_html=True)


# --- Main App Logic ---
def main():
    init_state(st.session_state)
    st.markdown(PAGE_CSS, unsafe_allow_html=True)
    show_notices()

    client = None
    try:
        client = get_supabase_client(st.session_state)
    except SupabaseConfigError as e:
        logger.error(str(e))

    user = None
    if client is not None:
        try:
            user = current_user(client)
        except Exception as e:
            logger.warning("Session lookup failed: %s", e)

    display_navigation(client, user)

    if st.session_state.view == VIEW_SIGN_IN and client is not None:
        display_sign_in(client)
        display_footer()
        return

    display_hero()

    if client is None:
        st.error("Supabase is not configured. Please set SUPABASE_URL and SUPABASE_ANON_KEY in your .env file.")
        display_footer()
        st.stop()

    backend = get_ai_backend()
    token = current_access_token(client)
    display_plants_grid(client, user, backend, token)
    display_ai_consultant(backend, token)
    display_footer()


if __name__ == "__main__":
    main()
