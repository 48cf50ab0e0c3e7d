"""JavaScript payloads evaluated inside the WhatsApp Web page."""

# ---------- Page state (QR / loading / chat list) ----------
JS_PAGE_STATE = r"""
() => {
    const qrEl = document.querySelector('div[data-ref]');
    const qr = qrEl && qrEl.offsetParent !== null ? qrEl.getAttribute('data-ref') : null;

    let loading = null;
    const progress = document.querySelector('progress');
    if (progress) {
        const container = progress.parentElement ? progress.parentElement.parentElement : null;
        loading = {
            percent: Math.round(Number(progress.value) || 0),
            message: container ? container.innerText.trim() : ''
        };
    }

    const chatList = !!document.querySelector('#pane-side');
    return { qr, loading, chatList };
}
"""

# ---------- Store exposure + stable helpers ----------
JS_EXPOSE_STORE = r"""
() => {
    if (window.Store && window.Store.Chat && window.WAExport) return true;
    if (typeof window.require !== 'function') return false;

    const load = (name) => {
        try { return window.require(name); } catch (e) { return null; }
    };

    const collections = load('WAWebCollections');
    if (!collections || !collections.Chat) return false;

    window.Store = Object.assign({}, collections);
    const conn = load('WAWebConnModel');
    if (conn) window.Store.Conn = conn.Conn;
    const user = load('WAWebUserPrefsMeUser');
    if (user) window.Store.User = user;
    const widFactory = load('WAWebWidFactory');
    if (widFactory) window.Store.WidFactory = widFactory;
    const socket = load('WAWebSocketModel');
    if (socket) window.Store.AppState = socket.Socket;
    const groupQuery = load('WAWebGroupQueryJob');
    if (groupQuery) window.Store.GroupQueryAndUpdate = groupQuery.queryAndUpdateGroupMetadataById;

    const modelsOf = (collection) => {
        if (!collection) return [];
        if (typeof collection.getModelsArray === 'function') return collection.getModelsArray();
        return collection._models || [];
    };
    const serializeId = (id) => id ? (id._serialized || id.toString()) : '';

    const serializeParticipants = (chat) => {
        const meta = chat.groupMetadata;
        if (!meta || !meta.participants) return [];
        return modelsOf(meta.participants).map(p => ({
            id: serializeId(p.id),
            user: p.id ? p.id.user : '',
            isAdmin: !!p.isAdmin,
            isSuperAdmin: !!p.isSuperAdmin
        }));
    };

    const serializeChat = (chat, withParticipants) => {
        const meta = chat.groupMetadata;
        return {
            id: serializeId(chat.id),
            name: chat.name || chat.formattedTitle || '',
            isGroup: !!chat.isGroup,
            participantCount: meta && meta.participants ? modelsOf(meta.participants).length : 0,
            participants: withParticipants ? serializeParticipants(chat) : [],
            timestamp: chat.t || 0
        };
    };

    const findByWid = async (collection, id) => {
        let model = collection.get(id);
        if (!model && window.Store.WidFactory && typeof collection.find === 'function') {
            try {
                model = await collection.find(window.Store.WidFactory.createWid(id));
            } catch (e) {
                model = null;
            }
        }
        return model || null;
    };

    window.WAExport = {
        getChats: () => modelsOf(window.Store.Chat).map(c => serializeChat(c, false)),

        getChat: async (chatId) => {
            const chat = await findByWid(window.Store.Chat, chatId);
            if (!chat) return null;
            if (chat.isGroup && window.Store.GroupQueryAndUpdate) {
                try { await window.Store.GroupQueryAndUpdate(chat.id); } catch (e) { }
            }
            return serializeChat(chat, true);
        },

        getContact: async (contactId) => {
            const contact = await findByWid(window.Store.Contact, contactId);
            if (!contact) return null;
            return {
                id: serializeId(contact.id),
                pushname: contact.pushname || '',
                name: contact.name || '',
                shortName: contact.shortName || ''
            };
        },

        getMe: () => {
            let wid = null;
            try {
                const u = window.Store.User;
                wid = u.getMaybeMePnUser ? u.getMaybeMePnUser() : u.getMeUser();
            } catch (e) {
                wid = null;
            }
            let phone = wid ? wid.user : '';
            if (!phone) {
                const stored = (window.localStorage.getItem('last-wid-md') || window.localStorage.getItem('last-wid') || '');
                phone = stored.replace(/"/g, '').split('@')[0].split(':')[0];
            }
            const name = (window.Store.Conn && window.Store.Conn.pushname) || '';
            return { name, phone };
        }
    };
    return true;
}
"""

JS_GET_CHATS = "() => window.WAExport.getChats()"
JS_GET_CHAT = "(chatId) => window.WAExport.getChat(chatId)"
JS_GET_CONTACT = "(contactId) => window.WAExport.getContact(contactId)"
JS_GET_ME = "() => window.WAExport.getMe()"

JS_LOGOUT = r"""
async () => {
    if (window.Store && window.Store.AppState && typeof window.Store.AppState.logout === 'function') {
        await window.Store.AppState.logout();
        return true;
    }
    return false;
}
"""

# ---------- Diagnostics for /api/debug ----------
JS_DEBUG_STORE = r"""
() => {
    const info = {
        hasStore: !!window.Store,
        storeKeys: window.Store ? Object.keys(window.Store).slice(0, 50) : [],
        hasChat: !!(window.Store && window.Store.Chat),
        chatMethods: [],
        chatCount: 0,
        groupCount: 0,
        sampleChats: []
    };

    if (window.Store && window.Store.Chat) {
        const chats = window.Store.Chat;
        info.chatMethods = Object.getOwnPropertyNames(Object.getPrototypeOf(chats)).slice(0, 20);

        if (typeof chats.getModelsArray === 'function') {
            const models = chats.getModelsArray();
            info.chatCount = models.length;
            info.groupCount = models.filter(c => c.isGroup).length;
            info.sampleChats = models.slice(0, 5).map(c => ({
                id: c.id ? (c.id._serialized || c.id.toString()) : 'no-id',
                name: c.name || c.formattedTitle || 'no-name',
                isGroup: !!c.isGroup,
                keys: Object.keys(c).slice(0, 15)
            }));
        }
        if (chats._models) info.modelsCount = chats._models.length;
        info.hasSerialize = typeof chats.serialize === 'function';
        info.hasToArray = typeof chats.toArray === 'function';
        info.hasForEach = typeof chats.forEach === 'function';
    }
    return info;
}
"""
