from __future__ import annotations

import logging
import os
import secrets
from typing import Any, Dict, Optional

from flask import (
    Flask,
    Response,
    abort,
    jsonify,
    redirect,
    render_template,
    request,
    session,
    url_for,
)
from flask_wtf import FlaskForm
from flask_wtf.csrf import CSRFProtect
from werkzeug.exceptions import HTTPException

from auth import AuthGate, Decision
from avatars import AvatarService
from forms import LoginForm, PostForm, RegisterForm
from models import (
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    PostStore,
    UserStore,
    seed_sample_data,
)
from sessions import MemorySessionInterface, MemorySessionStore

# =========================
# Configuración general
# =========================

def _env_bool(nombre: str, defecto: bool) -> bool:
    valor = os.environ.get(nombre)
    if valor is None:
        return defecto
    return valor.strip().lower() in ("1", "true", "yes", "on")


CLAVE_SESION = os.environ.get("SECRET_KEY")
PUERTO = int(os.environ.get("PORT", "3000"))
COOKIE_SEGURA = _env_bool("SESSION_COOKIE_SECURE", False)  # True siempre que haya HTTPS
CARGAR_EJEMPLOS = _env_bool("SEED_SAMPLE_DATA", True)
NIVEL_LOG = os.environ.get("LOG_LEVEL", "INFO").upper()

APP_NAME = "FitBlog"
COPYRIGHT_YEAR = 2024
POST_NOUN = "Post"

logging.basicConfig(level=NIVEL_LOG)
logger = logging.getLogger("fitblog")


def primer_error(form: FlaskForm) -> Optional[str]:
    for errores in form.errors.values():
        for error in errores:
            return str(error)
    return None


# =========================
# App Flask
# =========================

def create_app(
    config: Optional[Dict[str, Any]] = None,
    users: Optional[UserStore] = None,
    posts: Optional[PostStore] = None,
) -> Flask:
    app = Flask(__name__)
    app.config.update(
        SECRET_KEY=CLAVE_SESION,
        SESSION_COOKIE_SECURE=COOKIE_SEGURA,
        SESSION_COOKIE_HTTPONLY=True,
        SEED_SAMPLE_DATA=CARGAR_EJEMPLOS,
    )
    if config:
        app.config.update(config)

    if not app.config.get("SECRET_KEY"):
        # Nunca una clave fija en el código: sin SECRET_KEY las sesiones no sobreviven a un reinicio
        logger.warning("SECRET_KEY not set, using a random per-process key")
        app.config["SECRET_KEY"] = secrets.token_hex(32)

    # los registros caducan igual que la cookie permanente
    app.session_interface = MemorySessionInterface(
        MemorySessionStore(lifetime=app.permanent_session_lifetime)
    )
    csrf = CSRFProtect(app)

    users = users if users is not None else UserStore()
    posts = posts if posts is not None else PostStore()
    if app.config["SEED_SAMPLE_DATA"] and not len(users) and not len(posts):
        seed_sample_data(users, posts)

    auth = AuthGate(users)
    avatares = AvatarService()

    @app.context_processor
    def variables_globales() -> Dict[str, Any]:
        user = auth.current_user(session)
        return {
            "app_name": APP_NAME,
            "copyright_year": COPYRIGHT_YEAR,
            "post_noun": POST_NOUN,
            "logged_in": user is not None,
            "user_id": user.id if user is not None else "",
        }

    def requiere_login() -> Optional[Response]:
        if auth.require_authenticated(session) is Decision.REDIRECT_TO_LOGIN:
            return redirect(url_for("login"))
        return None

    # =========================
    # Errores
    # =========================

    @app.errorhandler(NotFoundError)
    def no_encontrado(e: NotFoundError):
        return render_template("paginas/error.html", message=str(e)), 404

    @app.errorhandler(ForbiddenError)
    def prohibido(e: ForbiddenError):
        return render_template("paginas/error.html", message=str(e)), 403

    @app.errorhandler(404)
    def pagina_no_encontrada(e: HTTPException):
        return render_template("paginas/error.html", message=e.description), 404

    @app.errorhandler(Exception)
    def error_inesperado(e: Exception):
        if isinstance(e, HTTPException):
            return e
        logger.exception("unhandled error on %s %s", request.method, request.path)
        return render_template("paginas/error.html", message="Something went wrong."), 500

    # =========================
    # Rutas: páginas
    # =========================

    @app.get("/")
    def index():
        user = auth.current_user(session)
        return render_template(
            "paginas/home.html",
            posts=posts.list_all(),
            user=user,
            # el formulario genera token CSRF y abre sesión: solo con usuario
            post_form=PostForm() if user else None,
            style="styles.css",
        )

    @app.get("/register")
    def register():
        return render_template(
            "paginas/login_register.html",
            reg_error=request.args.get("error"),
            register_form=RegisterForm(),
            login_form=LoginForm(),
            style="login.css",
        )

    @app.get("/login")
    def login():
        return render_template(
            "paginas/login_register.html",
            login_error=request.args.get("error"),
            register_form=RegisterForm(),
            login_form=LoginForm(),
            style="login.css",
        )

    @app.get("/error")
    def error():
        return render_template("paginas/error.html")

    @app.get("/profile")
    def profile():
        resp = requiere_login()
        if resp:
            return resp

        user = auth.current_user(session)
        if user is None:
            return redirect(url_for("login"))
        return render_template(
            "paginas/profile.html",
            user=user,
            posts=posts.list_by_author(user.username),
            style="profile.css",
        )

    @app.get("/post/<int:post_id>")
    def post_detail(post_id: int):
        post = posts.find_by_id(post_id)
        if post is None:
            return render_template("paginas/post_detail.html", post=None, style="styles.css"), 404
        return render_template(
            "paginas/post_detail.html",
            post=post,
            user=auth.current_user(session),
            style="styles.css",
        )

    @app.get("/avatar/<username>")
    def avatar(username: str):
        user = users.find_by_username(username)
        if user is None:
            abort(404)

        png = avatares.render_png(user.username[:1])
        if user.avatar_url is None:
            users.set_avatar_url(user.id, url_for("avatar", username=user.username))
        return Response(png, mimetype="image/png")

    # =========================
    # Rutas: sesión
    # =========================

    @app.post("/register")
    def register_post():
        form = RegisterForm()
        if not form.validate_on_submit():
            return redirect(url_for("register", error=primer_error(form)))

        try:
            user = users.create(form.username.data)
        except ConflictError:
            return redirect(url_for("register", error="Username already exists"))

        # el registro deja la sesión abierta
        auth.login(session, user.username)
        return redirect(url_for("index"))

    @app.post("/login")
    def login_post():
        form = LoginForm()
        if not form.validate_on_submit():
            return redirect(url_for("login", error=primer_error(form)))

        try:
            auth.login(session, form.username.data)
        except AuthenticationError:
            return redirect(url_for("login", error="Unknown username"))
        return redirect(url_for("index"))

    @app.get("/logout")
    def logout():
        try:
            auth.logout(session)
        except Exception:
            logger.exception("error destroying session")
            return redirect(url_for("error"))
        return redirect(url_for("index"))

    # =========================
    # Rutas: posts (POST)
    # =========================

    @app.post("/posts")
    def create_post():
        user = auth.current_user(session)
        if user is None:
            return redirect(url_for("login"))

        form = PostForm()
        posts.create(form.title.data or "", form.content.data or "", user)
        return redirect(url_for("index"))

    # sin login ni token: el contador no depende de la sesión
    @csrf.exempt
    @app.post("/like/<int:post_id>")
    def like_post(post_id: int):
        post = posts.increment_likes(post_id)
        if request.is_json or request.accept_mimetypes.best == "application/json":
            return jsonify({"id": post.id, "likes": post.likes})
        return redirect(request.referrer or url_for("index"))

    @app.post("/delete/<int:post_id>")
    def delete_post(post_id: int):
        resp = requiere_login()
        if resp:
            return resp

        user = auth.current_user(session)
        if user is None:
            return redirect(url_for("login"))
        posts.delete_by_id(post_id, user)
        return redirect(url_for("index"))

    return app


app = create_app()

if __name__ == "__main__":
    app.run(host="0.0.0.0", port=PUERTO, debug=False)
