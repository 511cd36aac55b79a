"""Точка входа Streamlit: восстановление сессии, проверка маршрута, отрисовка."""

import asyncio
import logging

import streamlit as st

from pds_client.components import StreamlitNavigator, StreamlitNotifier
from pds_client.config import get_settings
from pds_client.constants import ROUTE_LOGIN, ROUTE_REGISTER, SESSION_RUNTIME
from pds_client.core import AppBootstrap, BrowserCredentialStore, Pending, Redirect, create_app
from pds_client.logging_config import configure_from_settings

logger = logging.getLogger(__name__)

settings = get_settings()

st.set_page_config(page_title="Perfect Digital Society", page_icon="🛡️", layout="wide")

# Зависимости живут столько же, сколько сессия Streamlit
if SESSION_RUNTIME not in st.session_state:
    configure_from_settings(settings)
    _notifier, _navigator = StreamlitNotifier(), StreamlitNavigator()
    st.session_state[SESSION_RUNTIME] = (
        create_app(
            BrowserCredentialStore(settings.token_storage_key),
            _notifier,
            _navigator,
            settings=settings,
        ),
        _notifier,
        _navigator,
    )

app: AppBootstrap
notifier: StreamlitNotifier
navigator: StreamlitNavigator
app, notifier, navigator = st.session_state[SESSION_RUNTIME]
manager = app.session_manager

asyncio.run(app.start())
notifier.render()

path = navigator.current_path(default=settings.landing_route)
decision = app.decide(path)

if isinstance(decision, Pending):
    # Сессия ещё восстанавливается: ничего не показываем
    st.stop()

if isinstance(decision, Redirect):
    navigator.redirect(decision.path, replace=decision.replace)
    st.rerun()

if path == ROUTE_LOGIN:
    st.markdown("### Login")
    with st.form(key="login_form"):
        username = st.text_input("Username")
        password = st.text_input("Password", type="password")
        if st.form_submit_button("Login"):
            if asyncio.run(manager.login(username, password)):
                navigator.redirect(settings.landing_route)
            st.rerun()
    if st.button("Create an account"):
        navigator.redirect(ROUTE_REGISTER)
        st.rerun()

elif path == ROUTE_REGISTER:
    st.markdown("### Register")
    with st.form(key="register_form"):
        draft = {
            "firstName": st.text_input("First name"),
            "lastName": st.text_input("Last name"),
            "username": st.text_input("Username"),
            "email": st.text_input("Email"),
            "password": st.text_input("Password", type="password"),
            "confirmPassword": st.text_input("Confirm password", type="password"),
        }
        if st.form_submit_button("Register"):
            if asyncio.run(manager.register(draft)):
                navigator.redirect(ROUTE_LOGIN)
            st.rerun()

else:
    user = app.user()
    with st.sidebar:
        st.markdown(f"**{user.display_name}** · {user.role.value}")
        for route in app.routes.visible_routes(manager.session):
            if st.button(route.title, key=f"nav_{route.path}", use_container_width=True):
                navigator.redirect(route.path)
                st.rerun()
        if st.button("Logout", use_container_width=True):
            asyncio.run(manager.sign_out())
            navigator.redirect(ROUTE_LOGIN)
            st.rerun()

    route = app.routes.find(path)
    st.markdown(f"## {route.title if route else path}")
