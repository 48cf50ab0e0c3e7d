import io
import sys
import atexit
import signal
from functools import wraps

from flask import Flask, render_template, request, jsonify, send_file
from flask_socketio import SocketIO

import kafka_client
from config import DEBUG, HOST, PORT
from exporters.contacts import EXPORT_FORMATS, format_export
from utils import report
from whatsapp import client_js
from whatsapp.client import WhatsAppWebClient
from whatsapp.errors import GroupNotFound, NotConnected
from whatsapp.groups import list_groups
from whatsapp.participants import get_members
from whatsapp.relay import NotificationRelay
from whatsapp.session import SessionManager

logger = report.settings(__file__)

app = Flask(__name__)
socketio = SocketIO(app, cors_allowed_origins="*", async_mode="threading")

# ==================== SESSION ====================
relay = NotificationRelay()
session = SessionManager(client_factory=WhatsAppWebClient, relay=relay)

NOT_CONNECTED_MESSAGE = "WhatsApp não está conectado. Escaneie o QR Code primeiro."
GROUP_NOT_FOUND_MESSAGE = "Grupo não encontrado"


# Socket.IO sid -> relay subscription of that browser
subscriptions = {}


def forward_notifications(sid, subscription):
    """Push one browser's notifications in order until it disconnects."""
    while True:
        notification = subscription.get()
        if notification is None:
            return
        if notification.payload is None:
            socketio.emit(notification.type, to=sid)
        else:
            socketio.emit(notification.type, notification.payload, to=sid)


def require_whatsapp(view):
    """Reject the request with 503 unless the WhatsApp session is Ready."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        if not session.is_ready:
            raise NotConnected(NOT_CONNECTED_MESSAGE)
        return view(*args, **kwargs)
    return wrapper


@app.errorhandler(NotConnected)
def not_connected(error):
    return jsonify({"error": str(error)}), 503


# ==================== SOCKET.IO ====================

@socketio.on('connect')
def on_connect():
    subscription = relay.subscribe(replay=session.replay_events())
    subscriptions[request.sid] = subscription
    socketio.start_background_task(forward_notifications, request.sid, subscription)
    logger.info(f"🌐 Browser connected via Socket.IO ({relay.subscriber_count} listening)")


@socketio.on('disconnect')
def on_disconnect(reason=None):
    subscription = subscriptions.pop(request.sid, None)
    if subscription is not None:
        relay.unsubscribe(subscription)
    logger.info("🌐 Browser disconnected from Socket.IO")


# ==================== ROUTES ====================

@app.route('/')
def landing():
    return render_template('index.html')


@app.route('/api/status')
def status():
    return jsonify({
        "connected": session.is_ready,
        "user": session.info.to_dict() if session.info else None
    })


@app.route('/api/debug')
@require_whatsapp
def debug_store():
    """Inspect window.Store inside WhatsApp Web."""
    try:
        info = session.client.evaluate(client_js.JS_DEBUG_STORE)
        logger.info(f"🔍 Debug info: {info}")
        return jsonify(info)
    except Exception as e:
        logger.error(f"Debug error: {e}")
        return jsonify({"error": "Erro ao inspecionar o WhatsApp Web"}), 500


@app.route('/api/groups')
@require_whatsapp
def groups():
    try:
        logger.info("📋 Fetching groups...")
        found = list_groups(session.client)
        return jsonify({"groups": [group.to_dict() for group in found], "total": len(found)})
    except Exception as e:
        logger.error(f"❌ Error listing groups: {e}")
        return jsonify({"error": "Erro ao listar grupos"}), 500


@app.route('/api/groups/<group_id>/contacts')
@require_whatsapp
def group_contacts(group_id):
    try:
        logger.info(f"👥 Fetching contacts of group: {group_id}")
        group = get_members(session.client, group_id)
    except GroupNotFound:
        return jsonify({"error": GROUP_NOT_FOUND_MESSAGE}), 404
    except Exception as e:
        logger.error(f"❌ Error fetching contacts: {e}")
        return jsonify({"error": "Erro ao buscar contatos do grupo"}), 500

    return jsonify({
        "group": group.name,
        "contacts": [member.to_dict() for member in group.members],
        "total": len(group.members)
    })


@app.route('/api/groups/<group_id>/export')
@require_whatsapp
def export_group(group_id):
    kind = request.args.get('format', 'csv').lower()
    if kind not in EXPORT_FORMATS:
        return jsonify({"error": "Formato de exportação inválido. Use csv ou xlsx."}), 400

    try:
        group = get_members(session.client, group_id)
        export = format_export(group.name, group.members, kind)
    except GroupNotFound:
        return jsonify({"error": GROUP_NOT_FOUND_MESSAGE}), 404
    except Exception as e:
        logger.error(f"❌ Error exporting contacts: {e}")
        return jsonify({"error": "Erro ao exportar contatos"}), 500

    logger.info(f"📤 Exported {len(group.members)} contacts → {export.filename}")
    return send_file(
        io.BytesIO(export.content),
        mimetype=export.mimetype,
        as_attachment=True,
        download_name=export.filename
    )


@app.route('/api/logout')
def logout():
    try:
        if session.logout():
            return jsonify({"success": True, "message": "Desconectado com sucesso"})
        return jsonify({"success": True, "message": "Nenhuma sessão ativa"})
    except Exception as e:
        logger.error(f"Error logging out: {e}")
        return jsonify({"error": "Erro ao desconectar"}), 500


# ==================== CLEANUP ====================

def cleanup():
    """Close the browser on shutdown."""
    session.shutdown()


def handle_sigint(signum, frame):
    logger.info("🛑 Shutting down server...")
    cleanup()
    sys.exit(0)


# ==================== ENTRY POINT ====================

def main():
    atexit.register(cleanup)
    signal.signal(signal.SIGINT, handle_sigint)

    if kafka_client.is_enabled():
        socketio.start_background_task(kafka_client.forward_notifications, relay.subscribe())

    session.start()
    logger.info(f"🚀 Server running on http://localhost:{PORT}")
    socketio.run(app, host=HOST, port=PORT, debug=DEBUG, use_reloader=False, allow_unsafe_werkzeug=True)


if __name__ == '__main__':
    main()
