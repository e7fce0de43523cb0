"""
Flask Web Application for the conversational form-filling system

Thin HTTP layer over DialogueManager: pages, chat endpoint, cookies.
"""

import logging

from dotenv import load_dotenv
from flask import Flask, abort, jsonify, make_response, render_template, request, url_for

from formchat.config import FormConfig, Settings
from formchat.core.context_loader import ContextLoader
from formchat.core.dialogue_manager import DialogueManager
from formchat.core.session_registry import SessionRegistry
from formchat.errors import CollaboratorError, MissingPrimaryKeyError, PersistenceError
from formchat.llm import build_llm_client
from formchat.persistence import FormPersistence
from formchat.utils.helpers import generate_session_id, is_valid_session_id
from formchat.utils.linking import COOKIE_PATH, SESSION_COOKIE_NAME

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# One year, linking tokens outlive browser sessions
LINKING_COOKIE_MAX_AGE = 365 * 24 * 3600


def build_dialogue_manager(settings: Settings) -> DialogueManager:
    """Wire configuration, persistence and the LLM backend together"""
    forms = FormConfig.from_file(settings.config_path)
    persistence = FormPersistence(settings.data_dir)
    return DialogueManager(
        forms=forms,
        llm_client=build_llm_client(settings),
        persistence=persistence,
        context_loader=ContextLoader(forms, persistence),
        registry=SessionRegistry(ttl_seconds=settings.session_ttl),
    )


def error_response(error: Exception, status: int):
    return jsonify({
        'success': False,
        'error': str(error),
        'error_type': type(error).__name__
    }), status


def create_app(settings: Settings = None, dialogue_manager: DialogueManager = None) -> Flask:
    """
    Create the Flask app.

    Args:
        settings: Runtime settings (from environment if None)
        dialogue_manager: Preconfigured manager (built from settings if None)
    """
    settings = settings or Settings.from_env()
    manager = dialogue_manager or build_dialogue_manager(settings)

    app = Flask(__name__)
    app.config['SECRET_KEY'] = settings.secret_key
    app.extensions['formchat'] = manager

    def current_session_id():
        value = request.cookies.get(SESSION_COOKIE_NAME)
        return value if is_valid_session_id(value) else None

    def with_session_cookie(response, session_id):
        if request.cookies.get(SESSION_COOKIE_NAME) != session_id:
            response.set_cookie(
                SESSION_COOKIE_NAME, session_id,
                path=COOKIE_PATH, httponly=True, samesite='Lax'
            )
        return response

    def get_form(form_name):
        if form_name not in manager.forms:
            abort(404)
        return manager.forms.get(form_name)

    @app.route('/')
    def index():
        """Home page with every configured form"""
        return render_template('index.html', forms=manager.forms.forms())

    @app.route('/form/<form_name>')
    def form_page(form_name):
        """Chat page for one form, pre-filled from its context form"""
        schema = get_form(form_name)
        session_id = current_session_id() or generate_session_id()
        # Drops a chat started for another patient record
        context = manager.prefill(form_name, request.cookies.get, session_id)

        prefill = {
            spec.label: context.record[spec.name]
            for spec in schema.fields if context.record.get(spec.name)
        }

        response = make_response(render_template(
            'chat.html',
            form=schema,
            greeting=schema.greeting,
            prefill=prefill,
            context_form=context.form_name if context.found else '',
            chat_url=url_for('chat', form_name=form_name),
            reset_url=url_for('reset', form_name=form_name),
        ))
        return with_session_cookie(response, session_id)

    @app.route('/api/<form_name>/chat', methods=['POST'])
    def chat(form_name):
        """Process one chat turn"""
        schema = get_form(form_name)
        data = request.get_json(silent=True) or {}
        message = str(data.get('message', '')).strip()

        if not message:
            return jsonify({'success': False, 'error': 'Message is required'}), 400

        session_id = current_session_id() or generate_session_id()

        try:
            result = manager.handle_turn(form_name, session_id, message, request.cookies.get)
        except MissingPrimaryKeyError as e:
            logger.warning(f"Save rejected for {form_name}: {e}")
            return error_response(e, 422)
        except CollaboratorError as e:
            logger.error(f"LLM failure for {form_name}: {e}")
            return error_response(e, 502)
        except PersistenceError as e:
            logger.error(f"Persistence failure for {form_name}: {e}")
            return error_response(e, 500)

        body = {'success': True}
        body.update(result.to_response())
        if result.did_save and schema.next_form:
            body['next_form_url'] = url_for('form_page', form_name=schema.next_form)

        response = make_response(jsonify(body))

        if result.linking_token is not None:
            cookie_name, value = result.linking_token
            response.set_cookie(
                cookie_name, value,
                path=COOKIE_PATH, max_age=LINKING_COOKIE_MAX_AGE, samesite='Lax'
            )
            logger.info(f"Linking token '{cookie_name}' set for {form_name}")

        return with_session_cookie(response, session_id)

    @app.route('/api/<form_name>/reset', methods=['POST'])
    def reset(form_name):
        """Start the form over"""
        get_form(form_name)
        session_id = current_session_id()
        removed = bool(session_id) and manager.reset_session(form_name, session_id)
        return jsonify({'success': True, 'reset': removed})

    return app


if __name__ == '__main__':
    load_dotenv()

    app = create_app()

    print("\n" + "=" * 60)
    print("FORM CHAT - WEB INTERFACE")
    print("=" * 60)
    print("\nOpen your browser and go to: http://localhost:5000")
    print("\nPress Ctrl+C to stop the server")
    print("=" * 60 + "\n")

    app.run(host='0.0.0.0', port=5000, debug=False)
