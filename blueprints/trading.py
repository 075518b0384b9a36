from flask import Blueprint, current_app, jsonify
from flask_login import current_user, login_required

from blueprints.auth_helpers import current_account, demo_blocked
from extensions import db, limiter
from ledger import bots
from ledger.config import LedgerConfig
from ledger.currency import convert_currency, format_currency, quantize
from ledger.exceptions import NotFoundError
from models import BotTemplate, TradingBot
from schemas import CreateBotRequest, UpdateProgressRequest, load_body

bp = Blueprint("trading", __name__)


def _bot_limit():
    return current_app.config["BOT_RATE_LIMIT"]


def bot_view(bot, currency):
    """Stored KSH figures plus the same figures in the viewer's currency."""
    data = bot.to_dict()
    data["currency"] = "KSH"
    data["displayCurrency"] = currency
    for field in ("investment", "daily_profit", "total_profit"):
        converted = quantize(convert_currency(getattr(bot, field), "KSH", currency))
        data[f"display_{field}"] = float(converted)
        data[f"formatted_{field}"] = format_currency(converted, currency)
    return data


def template_view(template, currency):
    data = template.to_dict()
    price = quantize(convert_currency(template.investment, "KSH", currency))
    data["price"] = float(price)
    data["formattedPrice"] = format_currency(price, currency)
    data["multiplier"] = float(LedgerConfig.profit_multiplier(template.investment))
    return data


@bp.route("/api/bots", methods=["GET"])
@login_required
def list_bots():
    if current_user.is_demo:
        return jsonify({"bots": []}), 200

    user = current_account()
    rows = (
        TradingBot.query.filter_by(user_id=user.id)
        .order_by(TradingBot.created_at.desc(), TradingBot.id.desc())
        .all()
    )
    return jsonify({"bots": [bot_view(b, user.currency) for b in rows]}), 200


@bp.route("/api/bots/available", methods=["GET"])
@login_required
def available_bots():
    currency = LedgerConfig.DEMO_CURRENCY if current_user.is_demo else current_account().currency
    templates = (
        BotTemplate.query.filter_by(is_active=True)
        .order_by(BotTemplate.investment.asc())
        .all()
    )
    return jsonify({
        "bots": [template_view(t, currency) for t in templates],
        "brackets": LedgerConfig.get_bracket_summary(),
    }), 200


@bp.route("/api/bots", methods=["POST"])
@limiter.limit(_bot_limit)
@login_required
@demo_blocked("Demo users cannot purchase real bots")
def create_bot():
    """
    Purchase a bot, either a custom {name, investment} in the user's currency
    or an active template by id.
    """
    data = load_body(CreateBotRequest)
    user = current_account()

    name = data.name
    investment = data.investment
    investment_ksh = None
    image_url = current_app.config["BOT_IMAGE_URL"]
    template_id = None

    if data.template_id is not None:
        template = BotTemplate.query.filter_by(id=data.template_id, is_active=True).first()
        if template is None:
            raise NotFoundError("Bot not found or not available")
        template_id = template.id
        name = name or template.name
        image_url = template.image_url or image_url
        investment_ksh = template.investment
        investment = quantize(convert_currency(template.investment, "KSH", user.currency))

    bot = bots.purchase_bot(
        user,
        name,
        investment,
        image_url=image_url,
        template_id=template_id,
        investment_ksh=investment_ksh,
    )
    db.session.commit()

    current_app.logger.info(f"Bot {bot.id} purchased by user {user.id}")
    return jsonify({
        "message": "Bot purchased successfully",
        "bot": bot_view(bot, user.currency),
        "balance": float(user.balance),
        "formattedBalance": format_currency(user.balance, user.currency),
    }), 201


@bp.route("/api/bots/<int:bot_id>/progress", methods=["PUT"])
@login_required
@demo_blocked("Demo users cannot update bots")
def update_progress(bot_id):
    data = load_body(UpdateProgressRequest)
    user = current_account()
    bot = bots.get_user_bot(user.id, bot_id)

    result = bots.set_progress(bot, data.progress)
    db.session.commit()
    return jsonify(result), 200


@bp.route("/api/bots/<int:bot_id>/simulate", methods=["POST"])
@login_required
@demo_blocked("Demo users cannot update bots")
def simulate_bot(bot_id):
    user = current_account()
    bot = bots.get_user_bot(user.id, bot_id)

    step = bots.simulation_step(
        current_app.config["BOT_SIMULATION_STEP_MIN"],
        current_app.config["BOT_SIMULATION_STEP_MAX"],
    )
    result = bots.simulate(bot, step)
    db.session.commit()
    return jsonify(result), 200
