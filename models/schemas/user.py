from marshmallow import Schema, fields, pre_load, validate

# digit, lowercase, uppercase, one of the listed symbols, no whitespace, 8-20 chars
PASSWORD_PATTERN = r"^(?=.*[0-9])(?=.*[a-z])(?=.*[A-Z])(?=.*[@#$%^&+=!])(?=\S+$).{8,20}$"
PASSWORD_RULE = (
    "Must contain at least one digit, one lowercase letter, one uppercase letter, "
    "one special character (@#$%^&+=!), no whitespace, and be 8 - 20 characters long"
)

password_field = validate.Regexp(PASSWORD_PATTERN, error=PASSWORD_RULE)
name_field = validate.Length(min=2, max=30, error="Must be of 2 - 30 characters")


def _norm_email(v):
    return v.strip().lower() if isinstance(v, str) else v


class _EmailNormalizingSchema(Schema):
    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data = dict(data)
            data["email"] = _norm_email(data["email"])
        return data


class UserRegisterSchema(_EmailNormalizingSchema):
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True, validate=password_field)
    confirm_password = fields.String(required=True, load_only=True, validate=password_field)
    first_name = fields.String(required=True, validate=name_field)
    last_name = fields.String(required=True, validate=name_field)


class UserLoginSchema(_EmailNormalizingSchema):
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True)


class RefreshSchema(Schema):
    # blank is allowed through; the auth service decides what a blank token means
    refresh_token = fields.String(load_default=None, allow_none=True)


class ForgotPasswordSchema(_EmailNormalizingSchema):
    email = fields.Email(required=True)


class PasswordResetSchema(Schema):
    password_reset_token = fields.String(load_default=None, allow_none=True)
    new_password = fields.String(required=True, load_only=True, validate=password_field)
    confirm_password = fields.String(required=True, load_only=True, validate=password_field)


class UnregisterSchema(Schema):
    password = fields.String(required=True, load_only=True, validate=password_field)
    confirm_password = fields.String(required=True, load_only=True, validate=password_field)


class ChangePasswordSchema(Schema):
    current_password = fields.String(required=True, load_only=True, validate=password_field)
    new_password = fields.String(required=True, load_only=True, validate=password_field)
    confirm_new_password = fields.String(required=True, load_only=True, validate=password_field)


class UserOutSchema(Schema):
    id = fields.String()
    email = fields.String()
    first_name = fields.String(allow_none=True)
    last_name = fields.String(allow_none=True)
    role = fields.Method("get_role")
    is_enabled = fields.Boolean()
    is_non_locked = fields.Boolean()
    registered_at = fields.DateTime(allow_none=True)
    updated_at = fields.DateTime(allow_none=True)

    def get_role(self, obj):
        return getattr(obj.role, "value", obj.role)
