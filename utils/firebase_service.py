# utils/firebase_service.py - Push delivery through Firebase Cloud Messaging
import firebase_admin
from firebase_admin import credentials, messaging, exceptions
import json
from typing import Optional, Dict, Any
import logging

import config

logger = logging.getLogger(__name__)

class FirebaseService:
    _initialized = False
    _app = None

    @classmethod
    def initialize(cls) -> bool:
        """Initialize Firebase Admin SDK once"""
        if cls._initialized:
            return True

        try:
            firebase_service_account = config.FIREBASE_SERVICE_ACCOUNT
            if not firebase_service_account:
                logger.warning("FIREBASE_SERVICE_ACCOUNT not configured, push disabled")
                return False

            service_account_info = json.loads(firebase_service_account)

            required_fields = ['type', 'project_id', 'private_key', 'client_email']
            missing = [f for f in required_fields if f not in service_account_info]
            if missing:
                logger.error(f"Missing required fields in service account: {missing}")
                return False

            cred = credentials.Certificate(service_account_info)
            cls._app = firebase_admin.initialize_app(cred)
            cls._initialized = True

            logger.info(f"Firebase initialized successfully for project: {service_account_info.get('project_id')}")
            return True

        except json.JSONDecodeError as e:
            logger.error(f"Error parsing Firebase service account JSON: {e}")
            return False
        except Exception as e:
            logger.error(f"Error initializing Firebase: {e}")
            return False

    @classmethod
    async def send_notification(
        cls,
        token: str,
        title: str,
        body: str,
        data: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Send one push message; the same payload carries web, Android and iOS overrides"""
        if not cls.initialize():
            return {"success": False, "error": "not_configured"}

        notification_data = {k: str(v) for k, v in (data or {}).items()}

        try:
            message = messaging.Message(
                notification=messaging.Notification(title=title, body=body),
                data=notification_data,
                token=token,
                webpush=messaging.WebpushConfig(
                    notification=messaging.WebpushNotification(
                        title=title,
                        body=body,
                        icon="/icon-192x192.png",
                    ),
                    fcm_options=messaging.WebpushFCMOptions(link="/")
                ),
                android=messaging.AndroidConfig(
                    priority="high",
                    notification=messaging.AndroidNotification(title=title, body=body, sound="default")
                ),
                apns=messaging.APNSConfig(
                    payload=messaging.APNSPayload(
                        aps=messaging.Aps(
                            alert=messaging.ApsAlert(title=title, body=body),
                            sound="default"
                        )
                    )
                )
            )

            response = messaging.send(message)
            logger.info(f"Push sent: {response}")
            return {"success": True, "response": response}

        except messaging.UnregisteredError:
            logger.warning(f"FCM token is unregistered: {token[:20]}...")
            return {"success": False, "error": "unregistered_token", "should_remove": True}
        except messaging.SenderIdMismatchError:
            logger.error("Sender ID mismatch")
            return {"success": False, "error": "sender_mismatch", "should_remove": True}
        except exceptions.InvalidArgumentError as e:
            logger.error(f"Invalid argument: {e}")
            return {"success": False, "error": "invalid_argument", "should_remove": True}
        except Exception as e:
            logger.error(f"Unexpected error sending push: {e}")
            return {"success": False, "error": str(e)}
