import os
import logging
from flask import current_app
from werkzeug.utils import secure_filename

logger = logging.getLogger(__name__)

def get_storage_folder(config_key='INVOICE_FOLDER'):
    """Absolute path of a configured storage folder, created on first use"""
    folder = current_app.config.get(config_key) or os.path.join(current_app.instance_path, 'invoices')
    if not os.path.isabs(folder):
        folder = os.path.join(current_app.instance_path, folder)
    os.makedirs(folder, exist_ok=True)
    return folder

def build_file_path(filename, config_key='INVOICE_FOLDER'):
    return os.path.join(get_storage_folder(config_key), secure_filename(filename))

def save_file(filename, data, config_key='INVOICE_FOLDER'):
    """Write bytes to the storage folder and return the full path"""
    path = build_file_path(filename, config_key)
    with open(path, 'wb') as f:
        f.write(data)
    logger.info(f"Stored {len(data)} bytes at {path}")
    return path
