import copy
import os
from io import BytesIO
from typing import Dict, Tuple

from chalice import Response
from PIL import Image
from requests_toolbelt.multipart.decoder import MultipartDecoder

from chalicelib.constants import keys_structure
from chalicelib.constants.constants import MAIN_IMAGE_NAME, THUMB_IMAGE_NAME
from chalicelib.constants.status_codes import http200
from chalicelib.restaurants import get_owned_restaurant
from chalicelib.utils import auth as utils_auth, app as utils_app, db as utils_db
from chalicelib.utils.data import now_iso
from chalicelib.utils.exceptions import ValidationException
from chalicelib.utils.logger import logger
from chalicelib.utils.s3 import upload_file_to_s3, public_url

entities_to_upload_attachment_white_list = ['restaurant', 'menu_item']


def get_resize_width_height(image: Image, max_width: int) -> Tuple[int, int]:
    width, height = image.size
    divider = max(max([width, height]) / max_width, 1)
    return int(width / divider), int(height / divider)


def get_thumbnail(image: Image) -> Image:
    image_thumb = copy.deepcopy(image)
    width, height = get_resize_width_height(image_thumb, int(os.environ.get('MAX_THUMBNAIL_WIDTH', 200)))
    image_thumb.thumbnail(size=(width, height))
    return image_thumb


def compress_images(image_file_obj: BytesIO) -> Tuple[bytes, bytes]:
    image: Image = Image.open(image_file_obj).convert('RGB')
    image = image.resize(size=get_resize_width_height(image, int(os.environ.get('MAX_IMG_WIDTH', 1024))))

    image_thumb: Image = get_thumbnail(image)

    buf_main = BytesIO()
    image.save(buf_main, format='JPEG', optimize=True, quality=85)

    buf_thumb = BytesIO()
    image_thumb.save(buf_thumb, format='JPEG', optimize=True, quality=85)

    return buf_main.getvalue(), buf_thumb.getvalue()


def part_name(part) -> str:
    disposition = part.headers.get(b'Content-Disposition', b'').decode('utf-8')
    for chunk in disposition.split(';'):
        key, _, value = chunk.strip().partition('=')
        if key == 'name':
            return value.strip('"')
    return ''


def parse_multipart_request_data(current_request) -> Dict:
    content_type = current_request.headers.get('content-type', '')
    if not content_type.startswith('multipart/form-data'):
        raise ValidationException('Image must be sent as multipart/form-data')
    decoder = MultipartDecoder(current_request.raw_body, content_type)
    fields = {part_name(part): part.content for part in decoder.parts}
    if not fields.get('fileContent') or not fields.get('restaurantId'):
        raise ValidationException('Fields fileContent and restaurantId are required')
    return {
        'file_content': fields['fileContent'],
        'entity_type': fields.get('entityType', b'restaurant').decode('utf-8'),
        'restaurant_id': fields['restaurantId'].decode('utf-8'),
        'menu_item_id': fields['menuItemId'].decode('utf-8') if fields.get('menuItemId') else None
    }


def image_paths(entity_type: str, restaurant_id: str, menu_item_id: str = None) -> Tuple[str, str, Dict]:
    """
    Returns S3 paths of main image and thumbnail plus DB key of the entity the image belongs to
    """
    if entity_type not in entities_to_upload_attachment_white_list:
        raise ValidationException(f'You could not upload attachment to {entity_type=}')
    if entity_type == 'restaurant':
        folder = f'restaurants/{restaurant_id}/images'
        key = {'partkey': keys_structure.restaurants_pk,
               'sortkey': keys_structure.restaurants_sk.format(restaurant_id=restaurant_id)}
    else:
        if not menu_item_id:
            raise ValidationException('menuItemId is required for menu item image')
        folder = f'restaurants/{restaurant_id}/menu_items/{menu_item_id}/images'
        key = {'partkey': keys_structure.menu_items_pk.format(restaurant_id=restaurant_id),
               'sortkey': keys_structure.menu_items_sk.format(menu_item_id=menu_item_id)}
    return f'{folder}/{MAIN_IMAGE_NAME}', f'{folder}/{THUMB_IMAGE_NAME}', key


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def image_upload(current_request) -> Response:
    form = parse_multipart_request_data(current_request)
    get_owned_restaurant(current_request.auth_result, form['restaurant_id'])
    path_main, path_thumb, key = image_paths(form['entity_type'], form['restaurant_id'], form['menu_item_id'])
    # raises RecordNotFound for unknown menu item before anything is uploaded
    utils_db.get_db_item(key['partkey'], key['sortkey'])

    try:
        content_main, content_thumb = compress_images(BytesIO(form['file_content']))
    except OSError as e:
        raise ValidationException(f'File is not a valid image: {e}')

    upload_file_to_s3(content_main, path_main, 'image/jpeg')
    upload_file_to_s3(content_thumb, path_thumb, 'image/jpeg')
    image_url = public_url(path_main)
    utils_db.update_fields(key, {
        'image': image_url,
        'thumbnail': public_url(path_thumb),
        'date_updated': now_iso(),
        'updated_by': current_request.auth_result['user_id']
    })
    logger.info(f"image_upload ::: {form['entity_type']} image stored at {path_main}")
    return Response(status_code=http200, headers={"Content-Type": 'application/json'},
                    body={'message': f"{form['entity_type']} image was updated successfully", 'image': image_url})
