def get_reservation_confirmation_message(reservation_record):
    return f"""
        Hello {reservation_record.get('user_name')},\n
        Your reservation has been confirmed.\n
        Restaurant: {reservation_record.get('restaurant_name')}\n
        Date: {reservation_record.get('date')}\n
        Time: {reservation_record.get('time')}\n
        Guests: {reservation_record.get('guests')}\n
        Total: {reservation_record.get('total_price')}\n
        Down payment: {reservation_record.get('down_payment')}\n
        Reservation ID: {reservation_record.get('id_')}
    """


def get_owner_new_reservation_message(reservation_record):
    return f"""
        New reservation at {reservation_record.get('restaurant_name')}\n
        Customer: {reservation_record.get('user_name')}\n
        Phone: {reservation_record.get('user_phone')}\n
        Date: {reservation_record.get('date')}\n
        Time: {reservation_record.get('time')}\n
        Guests: {reservation_record.get('guests')}\n
        Special requests: {reservation_record.get('special_requests') or '-'}\n
        Reservation ID: {reservation_record.get('id_')}
    """
