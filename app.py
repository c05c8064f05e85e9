"""Streamlit front-end for broker bulk uploads and administrator tools."""
from __future__ import annotations

from typing import Sequence

import pandas as pd
import streamlit as st

from tax_qualifications import MongoDocumentStore, ServiceRegistry, build_services
from tax_qualifications.application.dto import NewUserRequest, UploadRequest
from tax_qualifications.config import SETTINGS
from tax_qualifications.domain.errors import QualificationError
from tax_qualifications.domain.models import AuditLog, Role, UserProfile
from tax_qualifications.domain.rbac import dashboard_route
from tax_qualifications.domain.results import BulkUploadResult
from tax_qualifications.presentation.backup_export import (
    backup_filename,
    render_backup_json,
    render_users_csv,
)
from tax_qualifications.presentation.error_report import (
    errors_to_rows,
    generate_template_csv,
    records_to_rows,
    render_errors_csv,
    render_html,
)


st.set_page_config(page_title="Calificaciones Tributarias", layout="wide")
st.title("Calificaciones Tributarias")


@st.cache_resource
def get_services() -> ServiceRegistry:
    return build_services(MongoDocumentStore(SETTINGS.mongo_uri, SETTINGS.db_name), SETTINGS)


def audit_logs_to_dataframe(entries: Sequence[AuditLog]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "fecha": entry.timestamp,
                "usuario": entry.user_email,
                "accion": entry.action.value,
                "recurso": entry.resource.value,
                "detalle": entry.details,
            }
            for entry in entries
        ]
    )


def users_to_dataframe(profiles: Sequence[UserProfile]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "uid": profile.uid,
                "nombre": profile.display_name,
                "email": profile.email,
                "rut": profile.national_id,
                "rol": profile.role.value,
                "activo": profile.active,
            }
            for profile in profiles
        ]
    )


services = get_services()

if "user" not in st.session_state:
    st.session_state["user"] = None
if "result" not in st.session_state:
    st.session_state["result"] = None


def show_login() -> None:
    with st.form("login"):
        email = st.text_input("Email")
        password = st.text_input("Contraseña", type="password")
        submitted = st.form_submit_button("Ingresar")
    if submitted:
        try:
            st.session_state["user"] = services.users.sign_in(email, password)
        except QualificationError as exc:
            st.error(str(exc))
        else:
            st.rerun()


def show_upload_result(result: BulkUploadResult) -> None:
    st.subheader("Resultado de la carga")
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Total", result.total_records)
    col2.metric("Agregados", result.added)
    col3.metric("Actualizados", result.updated)
    col4.metric("Errores", result.errors)
    st.caption(f"Tiempo de procesamiento: {result.processing_time_ms} ms")

    tabs = st.tabs(["Errores", "Registros"])
    with tabs[0]:
        if result.has_errors():
            st.dataframe(pd.DataFrame(errors_to_rows(result.iter_all_errors())), use_container_width=True)
            st.download_button(
                "Descargar errores CSV",
                data=render_errors_csv(result),
                file_name="errores_carga.csv",
                mime="text/csv",
            )
            st.download_button(
                "Descargar errores HTML",
                data=render_html(result).encode("utf-8"),
                file_name="errores_carga.html",
                mime="text/html",
            )
        else:
            st.success("Todos los registros se procesaron correctamente.")
    with tabs[1]:
        records = tuple(result.success_records) + tuple(result.error_records)
        st.dataframe(pd.DataFrame(records_to_rows(records)), use_container_width=True)


def show_broker_dashboard(user: UserProfile) -> None:
    st.header("Carga masiva")
    st.download_button(
        "Descargar plantilla",
        data=generate_template_csv().encode("utf-8"),
        file_name="plantilla_calificaciones.csv",
        mime="text/csv",
    )
    upload = st.file_uploader("Archivo de calificaciones", type=["csv", "xlsx", "xls"])
    run_btn = st.button("Procesar archivo", disabled=upload is None)
    if run_btn and upload is not None:
        progress = st.progress(0.0, text="Iniciando...")

        def on_progress(processed: int, total: int, phase: str) -> None:
            progress.progress(min(processed / total, 1.0) if total else 1.0, text=phase)

        request = UploadRequest(actor=user, filename=upload.name, content=upload.getvalue())
        try:
            st.session_state["result"] = services.bulk_upload.execute(request, on_progress=on_progress)
        except QualificationError as exc:
            st.session_state["result"] = None
            st.error(str(exc))

    result = st.session_state.get("result")
    if result is not None:
        show_upload_result(result)

    st.header("Resumen")
    stats = services.qualifications.broker_stats(user)
    col1, col2, col3 = st.columns(3)
    col1.metric("Calificaciones", stats.total_qualifications)
    col2.metric("Factores validados", stats.validated_factors)
    col3.metric("Tasa de éxito", f"{stats.success_rate}%")


def show_admin_dashboard(user: UserProfile) -> None:
    tabs = st.tabs(["Usuarios", "Auditoría", "Respaldo"])
    with tabs[0]:
        st.dataframe(users_to_dataframe(services.users.list_users(user)), use_container_width=True)
        with st.form("new_user"):
            first_name = st.text_input("Nombre")
            last_name = st.text_input("Apellido")
            national_id = st.text_input("Rut")
            email = st.text_input("Email")
            password = st.text_input("Contraseña", type="password")
            role = st.selectbox("Rol", [role.value for role in Role])
            create = st.form_submit_button("Crear usuario")
        if create:
            request = NewUserRequest(first_name, last_name, national_id, email, password, role)
            try:
                profile = services.users.create_user(user, request)
            except QualificationError as exc:
                st.error(str(exc))
            else:
                st.success(f"Usuario {profile.email} creado")
                st.rerun()
    with tabs[1]:
        st.dataframe(audit_logs_to_dataframe(services.audit.list_recent(user)), use_container_width=True)
    with tabs[2]:
        if st.button("Generar respaldo"):
            backup = services.backup.export_backup(user)
            st.download_button(
                "Descargar respaldo JSON",
                data=render_backup_json(backup),
                file_name=backup_filename(backup),
                mime="application/json",
            )
        if st.button("Exportar usuarios"):
            st.download_button(
                "Descargar usuarios CSV",
                data=render_users_csv(services.backup.export_users(user)),
                file_name="usuarios.csv",
                mime="text/csv",
            )


user = st.session_state["user"]
if user is None:
    show_login()
else:
    with st.sidebar:
        st.write(f"{user.display_name} ({user.role.value})")
        if st.button("Cerrar sesión"):
            services.users.sign_out(user)
            st.session_state["user"] = None
            st.session_state["result"] = None
            st.rerun()

    route = dashboard_route(user.role)
    if route == "/admin":
        show_admin_dashboard(user)
    elif route == "/dashboard":
        show_broker_dashboard(user)
    else:
        st.warning("Rol sin acceso asignado.")
