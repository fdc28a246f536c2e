"""JavaScript snippets that emulate GM_* APIs inside an MV3 extension.

Content-side shims are prepended to ``content.js``; background handlers are
concatenated into the service worker and answer messages tagged with a
``__gm*`` marker.
"""

from __future__ import annotations

GM_STORAGE_SHIM = """
var __gmStorage = {};
var __gmStorageReady = false;
var __gmStorageQueue = [];

chrome.storage.local.get(null, function(items) {
  __gmStorage = items || {};
  __gmStorageReady = true;
  __gmStorageQueue.forEach(function(fn) { fn(); });
  __gmStorageQueue = [];
});

function GM_setValue(key, value) {
  __gmStorage[key] = value;
  var update = {};
  update[key] = value;
  chrome.storage.local.set(update);
}

function GM_getValue(key, defaultValue) {
  if (key in __gmStorage) return __gmStorage[key];
  return defaultValue !== undefined ? defaultValue : null;
}

function GM_deleteValue(key) {
  delete __gmStorage[key];
  chrome.storage.local.remove(key);
}

function GM_listValues() {
  return Object.keys(__gmStorage);
}
"""

GM_STYLE_SHIM = """
function GM_addStyle(css) {
  var style = document.createElement('style');
  style.textContent = css;
  (document.head || document.documentElement).appendChild(style);
  return style;
}
"""

GM_XMLHTTPREQUEST_CONTENT_SHIM = """
function GM_xmlhttpRequest(details) {
  var request = {
    __gmxhr: true,
    url: details.url,
    method: details.method || 'GET',
    headers: details.headers || {},
    data: details.data || null,
    responseType: details.responseType || 'text',
    timeout: details.timeout || 0,
  };
  chrome.runtime.sendMessage(request, function(response) {
    var failure = null;
    if (chrome.runtime.lastError) failure = chrome.runtime.lastError.message;
    else if (!response) failure = 'No response from background';
    else if (response.error) failure = response.error;
    if (failure !== null) {
      if (typeof details.onerror === 'function') details.onerror({ error: failure });
      return;
    }
    if (typeof details.onload === 'function') {
      details.onload({
        status: response.status,
        statusText: response.statusText || '',
        responseText: response.responseText || '',
        responseHeaders: response.responseHeaders || '',
        finalUrl: details.url,
        readyState: 4,
        response: response.responseText || '',
      });
    }
  });
  return { abort: function() {} };
}
"""

GM_XMLHTTPREQUEST_BACKGROUND_HANDLER = """
chrome.runtime.onMessage.addListener(function(msg, sender, sendResponse) {
  if (!msg.__gmxhr) return false;
  var fetchOptions = { method: msg.method || 'GET', headers: msg.headers || {} };
  if (msg.data && msg.method !== 'GET' && msg.method !== 'HEAD') {
    fetchOptions.body = msg.data;
  }
  fetch(msg.url, fetchOptions)
    .then(function(r) {
      var headers = '';
      r.headers.forEach(function(v, k) { headers += k + ': ' + v + '\\r\\n'; });
      return r.text().then(function(text) {
        sendResponse({
          status: r.status,
          statusText: r.statusText,
          responseText: text,
          responseHeaders: headers,
        });
      });
    })
    .catch(function(err) { sendResponse({ error: err.message }); });
  return true;
});
"""

GM_NOTIFICATION_SHIM = """
function GM_notification(details, ondone) {
  var opts = typeof details === 'string'
    ? { text: details, title: 'Notification', image: '' }
    : details;
  chrome.runtime.sendMessage({
    __gmnotify: true,
    title: opts.title || 'Script Notification',
    message: opts.text || opts.message || '',
    iconUrl: opts.image || '',
  }, function() {
    var callback = opts.ondone || ondone;
    if (typeof callback === 'function') callback();
  });
}
"""

GM_NOTIFICATION_BACKGROUND_HANDLER = """
chrome.runtime.onMessage.addListener(function(msg, sender, sendResponse) {
  if (!msg.__gmnotify) return false;
  chrome.notifications.create({
    type: 'basic',
    iconUrl: msg.iconUrl || 'icons/icon48.png',
    title: msg.title,
    message: msg.message,
  }, function(id) { sendResponse({ id: id }); });
  return true;
});
"""

GM_SET_CLIPBOARD_SHIM = """
function GM_setClipboard(data, info) {
  if (navigator.clipboard && navigator.clipboard.writeText) {
    navigator.clipboard.writeText(data).catch(function(err) {
      console.warn('[GM_setClipboard] Failed:', err);
    });
    return;
  }
  var el = document.createElement('textarea');
  el.value = data;
  el.style.position = 'fixed';
  el.style.opacity = '0';
  document.body.appendChild(el);
  el.select();
  document.execCommand('copy');
  document.body.removeChild(el);
}
"""

GM_OPEN_IN_TAB_SHIM = """
function GM_openInTab(url, options) {
  var active = true;
  if (typeof options === 'boolean') active = !options;
  else if (options && typeof options === 'object') active = options.active !== false;
  chrome.runtime.sendMessage({ __gmopenTab: true, url: url, active: active });
}
"""

GM_OPEN_IN_TAB_BACKGROUND_HANDLER = """
chrome.runtime.onMessage.addListener(function(msg, sender, sendResponse) {
  if (!msg.__gmopenTab) return false;
  chrome.tabs.create({ url: msg.url, active: msg.active !== false });
  return false;
});
"""

GM_INFO_SHIM_TEMPLATE = """
var GM_info = {
  script: {
    name: %(name)s,
    version: %(version)s,
    description: %(description)s,
  },
  scriptMetaStr: '',
  version: '4.0',
};
"""

GM_LOG_SHIM = """
function GM_log() {
  console.log.apply(console, arguments);
}
"""
